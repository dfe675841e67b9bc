from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict
from app.modules.connections.models import Connection
from app.schemas.enums import ConnectionListType, ConnectionStatus


def pair_low_high(a: str, b: str) -> Tuple[str, str]:
    a_str = str(a)
    b_str = str(b)
    return (a_str, b_str) if a_str < b_str else (b_str, a_str)


class ConnectionStore:
    """
    Persistence for Connection records.

    Writes are conditional on the `version` the caller read, so two
    writers racing on the same record cannot both win.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------- reads ----------

    def get(self, connection_id: int) -> Optional[Connection]:
        return self.db.get(Connection, connection_id, populate_existing=True)

    def find_by_pair(self, user_a: str, user_b: str) -> Optional[Connection]:
        low, high = pair_low_high(user_a, user_b)
        return self.db.execute(
            select(Connection).where(
                Connection.user_low == low,
                Connection.user_high == high,
            )
        ).scalars().first()

    def list_for_user(
        self,
        user_id: str,
        status: Optional[ConnectionStatus] = None,
        list_type: ConnectionListType = ConnectionListType.all,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Connection], int]:
        if list_type == ConnectionListType.sent:
            filters = [Connection.requester_id == user_id]
        elif list_type == ConnectionListType.received:
            filters = [Connection.receiver_id == user_id]
        else:
            filters = [or_(Connection.requester_id == user_id, Connection.receiver_id == user_id)]

        if status is not None:
            filters.append(Connection.status == ConnectionStatus(status).value)

        total = self.db.execute(
            select(func.count()).select_from(Connection).where(*filters)
        ).scalar_one()

        rows = self.db.execute(
            select(Connection)
            .where(*filters)
            .order_by(Connection.requested_at.desc(), Connection.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        return list(rows), int(total)

    def open_chats_for_user(self, user_id: str, now: datetime) -> List[Connection]:
        rows = self.db.execute(
            select(Connection)
            .where(
                or_(Connection.requester_id == user_id, Connection.receiver_id == user_id),
                Connection.status == ConnectionStatus.accepted.value,
                Connection.chat_expires_at > now,
            )
            .order_by(Connection.chat_expires_at.asc())
        ).scalars().all()
        return list(rows)

    def stale_pending(self, now: datetime) -> List[Connection]:
        rows = self.db.execute(
            select(Connection).where(
                Connection.status == ConnectionStatus.pending.value,
                Connection.request_expires_at <= now,
            )
        ).scalars().all()
        return list(rows)

    # ---------- writes ----------

    def insert(self, connection: Connection) -> Connection:
        connection.user_low, connection.user_high = pair_low_high(
            connection.requester_id, connection.receiver_id
        )
        self.db.add(connection)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race against a request for the same pair
            self.db.rollback()
            existing = self.find_by_pair(connection.requester_id, connection.receiver_id)
            logger.info(
                f"Connection insert collided | requester={connection.requester_id} "
                f"receiver={connection.receiver_id}"
            )
            raise Conflict(
                "Connection already exists",
                status=existing.status if existing else None,
            )
        self.db.refresh(connection)
        return connection

    def update_if_version(self, connection: Connection, from_status: Optional[str] = None, **values) -> bool:
        """
        Apply `values` only if nobody else wrote the record since it was read
        (and, with `from_status`, only if it is still in that status).
        Returns False, with nothing written, when the version moved.
        """
        conditions = [Connection.id == connection.id, Connection.version == connection.version]
        if from_status is not None:
            conditions.append(Connection.status == from_status)

        result = self.db.execute(
            update(Connection)
            .where(and_(*conditions))
            .values(version=Connection.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False

        self.db.commit()
        self.db.refresh(connection)
        return True
