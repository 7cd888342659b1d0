"""
Module ORM Registry (``commerce_modules._orm_registry``).

Ensures every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.
Called by ``commerce_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``commerce_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # fmt: off
    import commerce_kernel.services.sequence_service  # noqa: F401
    import commerce_modules.catalog.orm  # noqa: F401
    import commerce_modules.documents.orm  # noqa: F401
    import commerce_modules.inventory.orm  # noqa: F401
    # fmt: on
