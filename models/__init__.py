from models.application import Application
from models.loan import FormFieldDefinition, LoanProduct
from models.sequence import ApplicationSequence

__all__ = [
    "Application",
    "ApplicationSequence",
    "FormFieldDefinition",
    "LoanProduct",
]
