from .reader import ExcelDirectorySource, read_excel_file
from .source import DataSource, Grid, InMemoryDataSource, TableDescriptor

__all__ = [
    "DataSource",
    "Grid",
    "TableDescriptor",
    "InMemoryDataSource",
    "ExcelDirectorySource",
    "read_excel_file",
]
