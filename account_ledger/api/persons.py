"""
Person endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import LedgerSystem, get_ledger_system
from .schemas import CreatePersonRequest
from ..persons import DuplicatePersonError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_person(
    request: CreatePersonRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Register an account owner"""
    try:
        person = system.person_registry.create_person(
            name=request.name,
            document=request.document,
            birth_date=request.birth_date
        )
    except DuplicatePersonError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return {"personId": person.person_id}


@router.get("/{person_id}")
def get_person(
    person_id: int,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get person details"""
    person = system.person_registry.get_person(person_id)
    if not person:
        raise HTTPException(status_code=404, detail="Person not found")
    return person.to_dict()
