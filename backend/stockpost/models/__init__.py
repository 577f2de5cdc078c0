from .tenancy import Company, User
from .catalog import CatalogVariant, CompanyProduct, CompanyService
from .inventory import StockLot, Variant
from .sales import Sale, SaleItem
from .appointments import CompanyAppointment
from .clients import CompanyClient

__all__ = [
    'Company', 'User',
    'CatalogVariant', 'CompanyProduct', 'CompanyService',
    'StockLot', 'Variant',
    'Sale', 'SaleItem',
    'CompanyAppointment',
    'CompanyClient',
]
