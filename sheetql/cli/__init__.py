"""Command line interface (``python -m sheetql.cli`` / ``sheetql``)."""
