from locator.i18n.messages import DEFAULT_LANGUAGE, MessageCatalog, MessageCatalogError

__all__ = ["DEFAULT_LANGUAGE", "MessageCatalog", "MessageCatalogError"]
