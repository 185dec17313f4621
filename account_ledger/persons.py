"""
Person Registry Module

Registers account owners. Accounts may only be opened for a registered person.
"""

from datetime import date
from typing import Optional

from .models import Person
from .storage import LedgerStore, StorageError
from .logging_config import get_logger, log_action


class DuplicatePersonError(ValueError):
    """A person with the same identity document is already registered"""
    pass


class PersonRegistry:
    """Creates and looks up persons"""
    
    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = get_logger("account_ledger.persons")
    
    def create_person(self, name: str, document: str, birth_date: date) -> Person:
        """
        Register a new person
        
        Raises:
            ValueError: If name or document is blank
            DuplicatePersonError: If the document is already registered
        """
        name = name.strip()
        document = document.strip()
        if not name:
            raise ValueError("Person name is required")
        if not document:
            raise ValueError("Person document is required")
        
        if self.store.find_person_by_document(document):
            raise DuplicatePersonError(f"Person with document {document} already exists")
        
        try:
            person = self.store.insert_person(name, document, birth_date)
        except StorageError:
            # Lost a race with a concurrent registration of the same document
            if self.store.find_person_by_document(document):
                raise DuplicatePersonError(f"Person with document {document} already exists")
            raise
        
        log_action(
            self.logger, "info", "Person created",
            action="create_person", resource=f"person:{person.person_id}"
        )
        return person
    
    def get_person(self, person_id: int) -> Optional[Person]:
        return self.store.get_person(person_id)
