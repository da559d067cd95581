"""
Jam API Endpoints

Responsibilities:
1. List pending / active / past jams
2. Create, inspect and delete jams
3. Join, leave, start and end jams
4. Repair performer history after an end

All rules live in JamManager; this module only maps requests onto it and
its exceptions onto HTTP status codes.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import JoinType
from schemas import (
    JamCreate,
    JamJoin,
    JamResponse,
    JamDetailResponse,
    DeleteResponse,
    HistorySyncResponse,
)
from core.jam_manager import JamManager
from core.exceptions import JamAppException
from services.auth_service import Identity
from api.deps import get_current_identity, get_jam_manager, to_http_error

router = APIRouter(prefix="/api/jams", tags=["jams"])
logger = logging.getLogger(__name__)


@router.get("/pending", response_model=List[JamResponse])
def list_pending_jams(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Jams not started yet, soonest first"""
    return [JamResponse.from_jam(jam) for jam in JamManager.find_pending_jams(db)]


@router.get("/active", response_model=List[JamResponse])
def list_active_jams(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Jams in progress, ending soonest first"""
    return [JamResponse.from_jam(jam) for jam in JamManager.find_active_jams(db)]


@router.get("/past", response_model=List[JamResponse])
def list_past_jams(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Ended jams, most recent first"""
    return [JamResponse.from_jam(jam) for jam in JamManager.find_past_jams(db)]


@router.post("", response_model=JamResponse, status_code=201)
def create_jam(
    jam_data: JamCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """
    Create a jam hosted by the caller

    Returns:
        The new PENDING jam
    """
    try:
        jam = manager.create_jam(db, jam_data.model_dump(), identity.user_id)
        return JamResponse.from_jam(jam)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to create jam: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{jam_id}", response_model=JamDetailResponse)
def get_jam_detail(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """
    Jam detail from the caller's point of view

    Returns:
        - jam: the jam itself
        - is_host / has_joined_as_player / has_joined_as_attendee
        - possible_roles: roles the caller could claim now
        - can_join_as_player
    """
    try:
        detail = manager.describe_for(db, jam_id, identity.user_id)
        detail["jam"] = JamResponse.from_jam(detail["jam"])
        return JamDetailResponse(**detail)

    except JamAppException as e:
        raise to_http_error(e)


@router.post("/{jam_id}/join", response_model=JamResponse)
def join_jam(
    jam_id: int,
    join_type: JoinType = Query(...),
    join_data: Optional[JamJoin] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """
    Join as PLAYER (chosen_role required) or ATTENDEE

    Preconditions:
    - jam is PENDING and the caller is not its host
    - PLAYER: chosen_role is one of the caller's possible roles
    """
    try:
        chosen_role = join_data.chosen_role if join_data else None
        jam = manager.join_jam(db, jam_id, identity.user_id, join_type, chosen_role)
        return JamResponse.from_jam(jam)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to join jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{jam_id}/leave", response_model=JamResponse)
def leave_jam(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """Leave a PENDING jam the caller has joined"""
    try:
        jam = manager.leave_jam(db, jam_id, identity.user_id)
        return JamResponse.from_jam(jam)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to leave jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{jam_id}/start", response_model=JamResponse)
def start_jam(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """
    Start a jam (host only)

    Once started the roster is locked and the jam moves from the pending
    list to the active list.
    """
    try:
        jam = manager.start_jam(db, jam_id, identity.user_id)
        return JamResponse.from_jam(jam)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to start jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{jam_id}/end", response_model=JamResponse)
def end_jam(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """End an active jam (host only); performers get it in their history"""
    try:
        jam = manager.end_jam(db, jam_id, identity.user_id)
        return JamResponse.from_jam(jam)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to end jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{jam_id}/history/sync", response_model=HistorySyncResponse)
def sync_jam_history(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """
    Re-run the performer history write for an ended jam (host only)

    Safe to repeat; complete=false means some performers are still missing
    the jam and the call should be retried.
    """
    try:
        complete = manager.sync_performer_history(db, jam_id, identity.user_id)
        return HistorySyncResponse(jam_id=jam_id, complete=complete)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to sync history for jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{jam_id}", response_model=DeleteResponse)
def delete_jam(
    jam_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    manager: JamManager = Depends(get_jam_manager),
):
    """Delete a pending jam (host only)"""
    try:
        manager.delete_jam(db, jam_id, identity.user_id)
        return DeleteResponse(deleted_jam_id=jam_id)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to delete jam {jam_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
