from onetimelink.db.models.access_link import AccessLink

__all__ = ["AccessLink"]
