"""
Family event consumer.

Keeps the local copies of care recipients and family memberships in sync
with the family service. These tables are read by the access guard only.
"""
import json
import asyncio
import logging
import pika
from uuid import UUID
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carecoord import config
from carecoord.db.models import CareRecipient, FamilyMembership, FamilyRole

logger = logging.getLogger(__name__)

ROUTING_KEYS = [
    "family.member_added",
    "family.member_role_changed",
    "family.member_removed",
    "care_recipient.created",
    "care_recipient.deleted",
]


def _insert_for(session: AsyncSession, model):
    """Dialect insert supporting ON CONFLICT DO UPDATE"""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


class FamilyEventConsumer:

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.host = config.RABBITMQ_HOST
        self.port = config.RABBITMQ_PORT
        self.user = config.RABBITMQ_USER
        self.password = config.RABBITMQ_PASSWORD
        self.family_exchange = config.RABBITMQ_FAMILY_EXCHANGE
        self.queue_name = "carecoord_family_events"
        self.session_factory = session_factory
        self.connection = None
        self.channel = None

    def connect(self):
        credentials = pika.PlainCredentials(self.user, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300
        )

        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()

        self.channel.exchange_declare(
            exchange=self.family_exchange,
            exchange_type='topic',
            durable=True
        )
        self.channel.queue_declare(queue=self.queue_name, durable=True)

        for routing_key in ROUTING_KEYS:
            self.channel.queue_bind(
                exchange=self.family_exchange,
                queue=self.queue_name,
                routing_key=routing_key
            )

        return self.queue_name

    def _session(self) -> AsyncSession:
        if self.session_factory is None:
            from carecoord.db.postgres import AsyncSessionLocal
            self.session_factory = AsyncSessionLocal
        return self.session_factory()

    def _parse_datetime(self, value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed

    def _get_value(self, data: Dict, *keys: str):
        for key in keys:
            if key in data and data[key] is not None:
                return data[key]
        return None

    def _get_uuid(self, data: Dict, *keys: str) -> Optional[UUID]:
        value = self._get_value(data, *keys)
        return UUID(str(value)) if value else None

    def _role(self, data: Dict, *keys: str) -> Optional[str]:
        role = self._get_value(data, *keys)
        if not role:
            return None
        role = str(role).upper()
        if role not in FamilyRole.__members__:
            logger.warning(f"Unknown family role {role}")
            return None
        return role

    async def _upsert_care_recipient(self, event_data: Dict):
        recipient_id = self._get_uuid(event_data, "care_recipient_id", "careRecipientId", "id")
        family_id = self._get_uuid(event_data, "family_id", "familyId")
        if not recipient_id or not family_id:
            logger.warning("Missing care_recipient_id or family_id in care recipient event")
            return

        full_name = self._get_value(event_data, "full_name", "fullName") or ""
        preferred_name = self._get_value(event_data, "preferred_name", "preferredName")
        created_at = self._parse_datetime(self._get_value(event_data, "created_at", "createdAt")) or datetime.utcnow()

        async with self._session() as session:
            stmt = _insert_for(session, CareRecipient).values(
                id=recipient_id,
                family_id=family_id,
                full_name=full_name,
                preferred_name=preferred_name,
                is_active=True,
                created_at=created_at,
                updated_at=created_at,
                deleted_at=None,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[CareRecipient.id],
                set_={
                    "family_id": family_id,
                    "full_name": full_name,
                    "preferred_name": preferred_name,
                    "is_active": True,
                    "updated_at": created_at,
                    "deleted_at": None,
                }
            )
            await session.execute(stmt)
            await session.commit()
        logger.info(f"Synced care recipient {recipient_id} (family {family_id})")

    async def _mark_care_recipient_deleted(self, event_data: Dict):
        recipient_id = self._get_uuid(event_data, "care_recipient_id", "careRecipientId", "id")
        if not recipient_id:
            logger.warning("Missing care_recipient_id in delete event")
            return

        deleted_at = self._parse_datetime(self._get_value(event_data, "deleted_at", "deletedAt")) or datetime.utcnow()

        async with self._session() as session:
            await session.execute(
                CareRecipient.__table__.update()
                .where(CareRecipient.id == recipient_id)
                .values(deleted_at=deleted_at, is_active=False, updated_at=deleted_at)
            )
            await session.commit()
        logger.info(f"Care recipient {recipient_id} marked deleted")

    async def _upsert_member(self, event_data: Dict):
        family_id = self._get_uuid(event_data, "family_id", "familyId")
        user_id = self._get_uuid(event_data, "user_id", "userId")
        role = self._role(event_data, "role")
        if not family_id or not user_id or not role:
            logger.warning("Missing family_id, user_id or role in member event")
            return

        now = datetime.utcnow()
        async with self._session() as session:
            stmt = _insert_for(session, FamilyMembership).values(
                family_id=family_id,
                user_id=user_id,
                role=role,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[FamilyMembership.family_id, FamilyMembership.user_id],
                set_={"role": role, "is_active": True, "updated_at": now}
            )
            await session.execute(stmt)
            await session.commit()
        logger.info(f"User {user_id} joined family {family_id} as {role}")

    async def _update_member_role(self, event_data: Dict):
        family_id = self._get_uuid(event_data, "family_id", "familyId")
        user_id = self._get_uuid(event_data, "user_id", "userId")
        new_role = self._role(event_data, "new_role", "newRole", "role")
        if not family_id or not user_id or not new_role:
            logger.warning("Missing family_id, user_id or new_role in role event")
            return

        async with self._session() as session:
            result = await session.execute(
                FamilyMembership.__table__.update()
                .where(FamilyMembership.family_id == family_id, FamilyMembership.user_id == user_id)
                .values(role=new_role, updated_at=datetime.utcnow())
            )
            await session.commit()
        if result.rowcount == 0:
            logger.warning(f"Role change for unknown member {user_id} of family {family_id}")
            return
        logger.info(f"User {user_id} in family {family_id} is now {new_role}")

    async def _remove_member(self, event_data: Dict):
        family_id = self._get_uuid(event_data, "family_id", "familyId")
        user_id = self._get_uuid(event_data, "user_id", "userId")
        if not family_id or not user_id:
            logger.warning("Missing family_id or user_id in member removal event")
            return

        async with self._session() as session:
            await session.execute(
                FamilyMembership.__table__.update()
                .where(FamilyMembership.family_id == family_id, FamilyMembership.user_id == user_id)
                .values(is_active=False, updated_at=datetime.utcnow())
            )
            await session.commit()
        logger.info(f"User {user_id} removed from family {family_id}")

    async def process_event(self, event_type: str, event_data: Dict):
        if event_type == "care_recipient.created":
            await self._upsert_care_recipient(event_data)
        elif event_type == "care_recipient.deleted":
            await self._mark_care_recipient_deleted(event_data)
        elif event_type == "family.member_added":
            await self._upsert_member(event_data)
        elif event_type == "family.member_role_changed":
            await self._update_member_role(event_data)
        elif event_type == "family.member_removed":
            await self._remove_member(event_data)
        else:
            logger.warning(f"Unknown event type: {event_type}")

    def callback(self, ch, method, properties, body):
        """Process incoming messages from the queue."""
        try:
            message = json.loads(body)
            event_type = method.routing_key or message.get("event_type") or message.get("event")
            event_data = message.get("data", message)

            asyncio.run(self.process_event(event_type, event_data))

            ch.basic_ack(delivery_tag=method.delivery_tag)

        except Exception as e:
            logger.error(f"Error processing message: {e}")
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)

    def start_consuming(self):
        """Start consuming messages from RabbitMQ."""
        try:
            queue_name = self.connect()

            logger.info("="*60)
            logger.info("Care Coordination Service - Family Event Consumer")
            logger.info(f"Connected to RabbitMQ: {self.host}:{self.port}")
            logger.info(f"Listening to queue: {queue_name}")
            logger.info(f"Routing keys: {', '.join(ROUTING_KEYS)}")
            logger.info("="*60)

            self.channel.basic_qos(prefetch_count=1)
            self.channel.basic_consume(
                queue=queue_name,
                on_message_callback=self.callback
            )

            self.channel.start_consuming()

        except KeyboardInterrupt:
            logger.info("Stopping consumer...")
            self.stop()
        except Exception as e:
            logger.error(f"Consumer error: {e}")
            self.stop()
            raise

    def stop(self):
        """Stop consuming and close connections."""
        if self.channel and not self.channel.is_closed:
            self.channel.stop_consuming()
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("Consumer stopped")


def start_consumer():
    """Entry point for starting the family event consumer."""
    consumer = FamilyEventConsumer()
    consumer.start_consuming()
