"""
Data access for the device directory and the chat audit log.
Both are thin SQLite tables; the pipeline only reads devices and only appends
chat records.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Tuple

from .db import get_db, init_db
from .errors import DeviceNotFoundError, DuplicateDeviceError
from .schema import ChatRecord, Device
from ..util.logging import logger

DEVICE_COLUMNS = (
    "id, device_id, device_name, room, room_id, device_type, connection_url, "
    "control_method, control_on, control_off, status, enabled, created_at, updated_at"
)


def _parse_ts(value) -> Optional[datetime]:
    """SQLite CURRENT_TIMESTAMP values come back as "YYYY-MM-DD HH:MM:SS" strings."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _row_to_device(row) -> Device:
    (id_, device_id, device_name, room, room_id, device_type, connection_url,
     control_method, control_on, control_off, status, enabled, created_at, updated_at) = row
    return Device(
        id=id_,
        device_id=device_id,
        device_name=device_name,
        room=room,
        room_id=room_id,
        device_type=device_type,
        connection_url=connection_url,
        control_method=(control_method or "GET").upper(),
        control_on=control_on,
        control_off=control_off,
        status=status,
        enabled=bool(enabled),
        created_at=_parse_ts(created_at),
        updated_at=_parse_ts(updated_at),
    )


class DeviceDirectory:
    """Read/write access to registered smart home devices."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        init_db(db_path)

    def _query(self, where: str = "", params: tuple = ()) -> List[Device]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {DEVICE_COLUMNS} FROM smart_home_device {where} ORDER BY id", params)
            return [_row_to_device(row) for row in cursor.fetchall()]

    def find_by_room(self, room: str) -> List[Device]:
        """Enabled devices whose room matches exactly."""
        return self._query("WHERE room = ? AND enabled = 1", (room,))

    def find_all(self, enabled_only: bool = False) -> List[Device]:
        if enabled_only:
            return self._query("WHERE enabled = 1")
        return self._query()

    def find_by_id(self, id_: int) -> Optional[Device]:
        devices = self._query("WHERE id = ?", (id_,))
        return devices[0] if devices else None

    def find_by_device_id(self, device_id: str) -> Optional[Device]:
        devices = self._query("WHERE device_id = ?", (device_id,))
        return devices[0] if devices else None

    def save(self, device: Device) -> Device:
        """Insert a new device, or update it when ``device.id`` is set."""
        values = (
            device.device_id, device.device_name, device.room, device.room_id,
            device.device_type, device.connection_url, (device.control_method or "GET").upper(),
            device.control_on, device.control_off, device.status, device.enabled,
        )
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                if device.id is None:
                    cursor.execute('''
                        INSERT INTO smart_home_device (
                            device_id, device_name, room, room_id, device_type, connection_url,
                            control_method, control_on, control_off, status, enabled
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ''', values)
                    new_id = cursor.lastrowid
                else:
                    cursor.execute('''
                        UPDATE smart_home_device SET
                            device_id = ?, device_name = ?, room = ?, room_id = ?, device_type = ?,
                            connection_url = ?, control_method = ?, control_on = ?, control_off = ?,
                            status = ?, enabled = ?, updated_at = CURRENT_TIMESTAMP
                        WHERE id = ?
                    ''', values + (device.id,))
                    if cursor.rowcount == 0:
                        raise DeviceNotFoundError(f"Device {device.id} not found")
                    new_id = device.id
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateDeviceError(f"Device id '{device.device_id}' already exists") from e

        logger.log_operation("device.save", "success", {"id": new_id, "device_id": device.device_id})
        return self.find_by_id(new_id)

    def delete(self, id_: int) -> bool:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM smart_home_device WHERE id = ?", (id_,))
            conn.commit()
            deleted = cursor.rowcount > 0

        logger.log_operation("device.delete", "success" if deleted else "not_found", {"id": id_})
        return deleted


class ChatAudit:
    """Append-only chat history, optionally mirrored into the knowledge base."""

    def __init__(self, db_path: Optional[str] = None, knowledge_base=None, index_chats: bool = False):
        self.db_path = db_path
        self.knowledge_base = knowledge_base
        self.index_chats = index_chats
        init_db(db_path)

    def append(self, question: str, answer: str, mode: str, answer_source: str,
               rag_context: Optional[str] = None) -> int:
        """Store one question/answer pair and return its row id."""
        rag_used = bool(rag_context and rag_context.strip())
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO chat_history (question, answer, answer_source, mode, rag_used, rag_context)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (question, answer, answer_source, mode, rag_used, rag_context))
            conn.commit()
            chat_id = cursor.lastrowid

        logger.log_audit_write(mode, question, chat_id=chat_id)

        if self.index_chats and self.knowledge_base is not None:
            self._index_chat(chat_id, question, answer, mode, answer_source, rag_used)

        return chat_id

    def _index_chat(self, chat_id: int, question: str, answer: str, mode: str,
                    answer_source: str, rag_used: bool):
        try:
            self.knowledge_base.add_document(
                f"Q: {question}\nA: {answer}",
                {
                    "source": "chat",
                    "chatId": chat_id,
                    "mode": mode,
                    "answerSource": answer_source,
                    "ragUsed": rag_used,
                },
            )
        except Exception as e:
            logger.warning(f"Failed to index chat {chat_id} into knowledge base: {e}")

    def list_page(self, page: int = 0, size: int = 20) -> Tuple[List[ChatRecord], int]:
        """Newest-first page of chat records, plus the total record count."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM chat_history")
            total = cursor.fetchone()[0]
            cursor.execute('''
                SELECT id, question, answer, answer_source, mode, rag_used, rag_context, created_at
                FROM chat_history
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
            ''', (size, page * size))
            rows = cursor.fetchall()

        records = [
            ChatRecord(
                id=id_,
                question=question,
                answer=answer,
                answer_source=answer_source,
                mode=mode,
                rag_used=bool(rag_used),
                rag_context=rag_context,
                created_at=_parse_ts(created_at),
            )
            for id_, question, answer, answer_source, mode, rag_used, rag_context, created_at in rows
        ]
        return records, total
