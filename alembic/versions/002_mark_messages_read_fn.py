"""Add mark_messages_read_up_to function.

Revision ID: 002_mark_messages_read_fn
Revises: 001_initial_schema
Create Date: 2025-01-02 00:00:00.000000

Marks every message in a conversation up to a given id as read by one
profile in a single statement and returns the ids that changed.
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002_mark_messages_read_fn"
down_revision: Union[str, None] = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION mark_messages_read_up_to(
            p_conversation_id uuid,
            p_profile_id uuid,
            p_last_message_id bigint
        )
        RETURNS SETOF bigint
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RETURN QUERY
            UPDATE messages
               SET read_by = array_append(read_by, p_profile_id)
             WHERE conversation_id = p_conversation_id
               AND id <= p_last_message_id
               AND NOT (p_profile_id = ANY(read_by))
            RETURNING id;
        END;
        $$;
        """
    )


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS mark_messages_read_up_to(uuid, uuid, bigint)")
