"""
Concept list endpoints: generate marketing concepts and revise them from feedback
"""
from datetime import date
from typing import List
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from stylestudio.database.records import ConceptListRecord, UserRecord
from stylestudio.database.repository import Storage
from stylestudio.models.llm_module import ConceptParseError
from stylestudio.api.dependencies import (
    concept_list_access, get_current_user, get_llm, get_storage, prompt_read_access
)
from stylestudio.api.schemas import ConceptListGenerateRequest, ConceptListUpdate, ReviseConceptsRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/concept-lists", response_model=List[ConceptListRecord])
async def list_concept_lists(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    """All lists for admins, own lists otherwise"""
    return await storage.list_concept_lists(None if user.role == "admin" else user.id)


@router.get("/concept-lists/{list_id}", response_model=ConceptListRecord)
async def get_concept_list(concept_list: ConceptListRecord = Depends(concept_list_access)):
    return concept_list


@router.post("/generate-concept-list", response_model=ConceptListRecord, status_code=status.HTTP_201_CREATED)
async def generate_concept_list(
    request: ConceptListGenerateRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    llm=Depends(get_llm)
):
    """
    Generate a concept list and store it
    A reply that is not a concept list is a 502 and nothing is stored
    """
    prompt_text = request.prompt_text
    if not prompt_text and request.prompt_id:
        system_prompt = await prompt_read_access.load(storage, user, request.prompt_id)
        prompt_text = system_prompt.prompt_text

    try:
        concepts = await llm.generate_concepts(
            company_name=request.company_name,
            marketing_content=request.marketing_content,
            quantity=request.quantity,
            temperature=request.temperature,
            literal_metaphorical=request.literal_metaphorical,
            simple_complex=request.simple_complex,
            reference_image_url=request.reference_image_url,
            prompt_text=prompt_text,
        )
    except ConceptParseError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to parse AI response: {e}. The AI must return a JSON array of concept strings or objects."
        )
    except Exception as e:
        logger.error(f"Error generating concept list: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate concept list")

    concept_list = await storage.create_concept_list({
        "name": request.name or f"{request.company_name} - {date.today().isoformat()}",
        "company_name": request.company_name,
        "marketing_content": request.marketing_content,
        "reference_image_url": request.reference_image_url,
        "prompt_id": request.prompt_id,
        "prompt_text": request.prompt_text,
        "temperature": request.temperature,
        "literal_metaphorical": request.literal_metaphorical,
        "simple_complex": request.simple_complex,
        "concepts": concepts,
        "user_id": user.id,
    })
    logger.info(f"Concept list {concept_list.id} created with {len(concepts)} concepts")
    return concept_list


@router.patch("/concept-lists/{list_id}", response_model=ConceptListRecord)
async def update_concept_list(
    request: ConceptListUpdate,
    concept_list: ConceptListRecord = Depends(concept_list_access),
    storage: Storage = Depends(get_storage)
):
    return await storage.update_concept_list(concept_list.id, request.model_dump(exclude_unset=True))


@router.post("/concept-lists/{list_id}/revise", response_model=ConceptListRecord)
async def revise_concept_list(
    request: ReviseConceptsRequest,
    concept_list: ConceptListRecord = Depends(concept_list_access),
    storage: Storage = Depends(get_storage),
    llm=Depends(get_llm)
):
    """
    Rewrite every concept of a list from feedback
    When the reply cannot be parsed the stored list is returned untouched
    """
    try:
        concepts, revised = await llm.revise_concepts(concept_list, request.feedback)
    except Exception as e:
        logger.error(f"Error revising concept list {concept_list.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to revise concept list")

    if not revised:
        logger.warning(f"Concept list {concept_list.id} left unchanged")
        return concept_list
    return await storage.update_concept_list(concept_list.id, {"concepts": concepts})


@router.delete("/concept-lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_concept_list(
    concept_list: ConceptListRecord = Depends(concept_list_access),
    storage: Storage = Depends(get_storage)
):
    await storage.delete_concept_list(concept_list.id)
    logger.info(f"Concept list {concept_list.id} deleted")
