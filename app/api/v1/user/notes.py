import uuid

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.schemas.user.notes import CreateNote, UpdateNote
from app.services.user.notes import NotesService

router = APIRouter(prefix="/notes", tags=["User Notes"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_notes(
    q: str | None = Query(None, max_length=200),
    pinned: bool | None = Query(None),
    archived: bool | None = Query(None),
    module_id: uuid.UUID | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.list_notes_async(
        user, q, pinned, archived, str(module_id) if module_id else None, page, limit
    )
    return success("NOTES_FETCH_SUCCESS", "Notes berhasil diambil", data)


@router.get("/{note_id}", status_code=status.HTTP_200_OK)
async def get_note(
    note_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.get_note_async(user, str(note_id))
    return success("NOTE_FETCH_SUCCESS", "Note berhasil diambil", data)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_note(
    schema: CreateNote = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.create_note_async(user, schema)
    return success("NOTE_CREATE_SUCCESS", "Note berhasil dibuat", data)


@router.put("/{note_id}", status_code=status.HTTP_200_OK)
async def update_note(
    note_id: uuid.UUID,
    schema: UpdateNote = Body(),
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.update_note_async(user, str(note_id), schema)
    return success("NOTE_UPDATE_SUCCESS", "Note berhasil diperbarui", data)


@router.post("/{note_id}/toggle-pin", status_code=status.HTTP_200_OK)
async def toggle_pin(
    note_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.toggle_async(user, str(note_id), "pinned")
    return success("NOTE_PIN_TOGGLED", "Status pin berhasil diubah", data)


@router.post("/{note_id}/toggle-archive", status_code=status.HTTP_200_OK)
async def toggle_archive(
    note_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.toggle_async(user, str(note_id), "archived")
    return success("NOTE_ARCHIVE_TOGGLED", "Status arsip berhasil diubah", data)


@router.delete("/{note_id}", status_code=status.HTTP_200_OK)
async def delete_note(
    note_id: uuid.UUID,
    authorization: AuthorizationService = Depends(AuthorizationService),
    notes_service: NotesService = Depends(NotesService),
):
    user = await authorization.get_current_user()
    data = await notes_service.delete_note_async(user, str(note_id))
    return success("NOTE_DELETE_SUCCESS", "Note berhasil dihapus", data)
