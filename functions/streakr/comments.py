"""
Per-question comment threads.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from shared.question_ids import infer_round_number
from streakr.errors import NotFoundError, ValidationError
from streakr.records import CommentRecord

logger = logging.getLogger(__name__)

MAX_BODY_LENGTH = 300
PAGE_SIZE = 20


class CommentService:
    def __init__(self, db):
        self.db = db

    def list_for_question(self, question_id: str) -> list[CommentRecord]:
        return self.db.list_comments(question_id, limit=PAGE_SIZE)

    def add(
        self,
        uid: str,
        question_id: str,
        body: Optional[str],
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> CommentRecord:
        text = str(body or "").strip()
        if not text:
            raise ValidationError("Comment body is required")
        if display_name is None:
            user = self.db.get_user(uid)
            display_name = user.display_name if user else None
        comment = CommentRecord(
            id=uuid.uuid4().hex,
            question_id=question_id,
            round_number=infer_round_number(question_id),
            uid=uid,
            body=text[:MAX_BODY_LENGTH],
            display_name=display_name,
            photo_url=photo_url,
            created_at=time.time(),
        )
        self.db.save_comment(comment)
        return comment

    def remove(self, question_id: str, comment_id: str) -> None:
        if not self.db.set_comment_removed(question_id, comment_id, True):
            raise NotFoundError("Comment not found")
        logger.info("Removed comment %s on %s", comment_id, question_id)
