"""
Device directory endpoints and manual device control.
Every change to the directory re-syncs the device documents in the
knowledge base so the model always sees the current rooms.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from .deps import get_device_directory, get_dispatcher, get_knowledge_base
from .schemas import ControlRequest, ControlResponse, DeviceRequest, DeviceResponse
from ..core.errors import DeviceNotFoundError, DuplicateDeviceError
from ..core.schema import Device
from ..util.logging import logger

router = APIRouter()


def _sync_knowledge_base(kb, directory):
    # Sync problems must not undo a directory change that already succeeded
    try:
        kb.sync_from_devices(directory.find_all(enabled_only=True))
    except Exception as e:
        logger.warning(f"Knowledge base device sync failed: {e}")


@router.get("/", response_model=List[DeviceResponse])
def list_devices(room: Optional[str] = None, directory=Depends(get_device_directory)):
    if room:
        return directory.find_by_room(room)
    return directory.find_all()


@router.post("/control", response_model=ControlResponse)
def control(req: ControlRequest, directory=Depends(get_device_directory), dispatcher=Depends(get_dispatcher)):
    turn_on = req.action == "on"
    if req.device_id:
        device = directory.find_by_device_id(req.device_id)
        if device is None:
            raise HTTPException(status_code=404, detail=f"Device {req.device_id} not found")
        if not device.enabled:
            raise HTTPException(status_code=400, detail=f"Device {req.device_id} is disabled")
        return ControlResponse(success_count=1 if dispatcher.control_device(device, turn_on) else 0)

    if not req.room or not req.room.strip():
        raise HTTPException(status_code=400, detail="Either room or device_id is required")
    return ControlResponse(success_count=dispatcher.resolve(req.room.strip(), turn_on))


@router.get("/{id}", response_model=DeviceResponse)
def get_device(id: int, directory=Depends(get_device_directory)):
    device = directory.find_by_id(id)
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


@router.post("/", response_model=DeviceResponse)
def create_device(req: DeviceRequest, directory=Depends(get_device_directory), kb=Depends(get_knowledge_base)):
    try:
        device = directory.save(Device(**req.model_dump()))
    except DuplicateDeviceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    _sync_knowledge_base(kb, directory)
    return device


@router.put("/{id}", response_model=DeviceResponse)
def update_device(id: int, req: DeviceRequest, directory=Depends(get_device_directory), kb=Depends(get_knowledge_base)):
    existing = directory.find_by_id(id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Device not found")
    try:
        device = directory.save(Device(id=id, created_at=existing.created_at, **req.model_dump()))
    except DuplicateDeviceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    _sync_knowledge_base(kb, directory)
    return device


@router.delete("/{id}")
def delete_device(id: int, directory=Depends(get_device_directory), kb=Depends(get_knowledge_base)):
    if not directory.delete(id):
        raise HTTPException(status_code=404, detail="Device not found")
    _sync_knowledge_base(kb, directory)
    return {"deleted": id}
