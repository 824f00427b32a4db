"""Concert reviews and ratings."""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any

from .models import Response, Review, ReviewEntry, ServiceError, pagination_from_query
from .store import Database


class ReviewRepository:
    """Stores one review per user and concert and reports on them."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def save_review(self, review: Review) -> Response:
        try:
            existing = self._db.query(
                "SELECT id, concert_id, user_id, rating, feedback FROM reviews "
                "WHERE concert_id = ? AND user_id = ?",
                (review.concert_id, review.user_id),
            )
        except sqlite3.Error:
            existing = []
        if existing:
            row = existing[0]
            found = Review(
                concert_id=row["concert_id"],
                user_id=row["user_id"],
                rating=row["rating"],
                feedback=row["feedback"],
                id=row["id"],
            )
            return Response("You have already reviewed.", data=found)
        try:
            cursor = self._db.execute(
                "INSERT INTO reviews (concert_id, user_id, rating, feedback) VALUES (?, ?, ?, ?)",
                (review.concert_id, review.user_id, review.rating, review.feedback),
            )
        except sqlite3.Error as exc:
            raise ServiceError("Review is not saved.") from exc
        saved = Review(
            concert_id=review.concert_id,
            user_id=review.user_id,
            rating=review.rating,
            feedback=review.feedback,
            id=cursor.lastrowid,
        )
        return Response("Review is Saved successfully.", data=saved)

    def get_reviews(self, concert_id: int, query: Mapping[str, Any] | None = None) -> Response:
        page = pagination_from_query(query)
        try:
            rows = self._db.query(
                "SELECT r.user_id, r.concert_id, r.rating, r.feedback, u.username, u.profile_pic_url "
                "FROM reviews AS r LEFT JOIN users AS u ON r.user_id = u.id "
                "WHERE r.concert_id = ? ORDER BY r.id LIMIT ? OFFSET ?",
                (concert_id, page.limit, page.offset),
            )
        except sqlite3.Error:
            rows = []
        if not rows:
            return Response("Reveiws not found.", data=[])
        entries = [
            ReviewEntry(
                user_id=row["user_id"],
                concert_id=row["concert_id"],
                rating=row["rating"],
                feedback=row["feedback"],
                username=row["username"] or "",
                profile_pic_url=row["profile_pic_url"] or "",
            )
            for row in rows
        ]
        return Response("Reviews found.", data=entries)

    def get_overall_rating(self, concert_id: int) -> Response:
        try:
            (row,) = self._db.query(
                "SELECT AVG(rating) AS rating FROM reviews WHERE concert_id = ?", (concert_id,)
            )
        except sqlite3.Error:
            return Response("Review not found.", data=0.0)
        if row["rating"] is None:
            return Response("Review not found.", data=0.0)
        return Response("Review found", data=float(row["rating"]))