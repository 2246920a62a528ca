def test_imports():
    """
    @brief
    Verifies that all core allocval modules are importable.

    @details
    Ensures package structure integrity and confirms that the schemas,
    validator, dataloader and export layers resolve without import errors
    (including the session ↔ export dependency).
    """
    import allocval.dataloader.config_loader
    import allocval.dataloader.table_loader
    import allocval.errors
    import allocval.export.report_export
    import allocval.schemas.entities
    import allocval.schemas.models
    import allocval.validator.session
    import allocval.validator.validator

    # --- Assert ---
    assert all(
        [
            allocval.dataloader.config_loader,
            allocval.dataloader.table_loader,
            allocval.errors,
            allocval.export.report_export,
            allocval.schemas.entities,
            allocval.schemas.models,
            allocval.validator.session,
            allocval.validator.validator,
        ]
    )
