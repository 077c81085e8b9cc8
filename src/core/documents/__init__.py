from src.core.documents.models import DocumentSequence
from src.core.documents.number_generator import DocumentNumberGenerator, DocumentPrefix

__all__ = ["DocumentSequence", "DocumentNumberGenerator", "DocumentPrefix"]
