# app/services/notification_service.py
import logging
import uuid
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, Dict, Any, List, Tuple

from app.models.notification import Notification, NotificationType
from app.models.user import public_user_info

class NotificationService:
    """
    Shared service for notification business logic.
    Other domain services call create_notification; the notifications API
    reads and acknowledges them.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.notifications_ref = self.db.collection('notifications')
        self.users_ref = self.db.collection('users')

    def create_notification(self, recipient_id: str, sender_id: str, n_type: NotificationType,
                            post_id: Optional[str] = None, comment_id: Optional[str] = None,
                            target_summary: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Create a notification and store it in Firestore.
        - No notification is created for yourself.
        - Failures are logged and never reach the caller.

        :param recipient_id: user who receives the notification
        :param sender_id: user who triggered it
        :param n_type: NotificationType member
        :param post_id: related post, if any
        :param comment_id: related comment, if any
        :param target_summary: short text shown with it (e.g. the comment)
        """
        if not recipient_id or recipient_id == sender_id:
            return None

        try:
            sender_doc = self.users_ref.document(sender_id).get()
            if not sender_doc.exists:
                logging.warning(f"Notification skipped: sender not found (ID: {sender_id})")
                return None

            notification = Notification(
                notification_id=str(uuid.uuid4()),
                recipient_id=recipient_id,
                sender=public_user_info(sender_doc.to_dict()),
                type=n_type,
                post_id=post_id,
                comment_id=comment_id,
                target_summary=target_summary
            )

            # Store the enum member as its string value
            notification_dict = asdict(notification)
            notification_dict['type'] = notification.type.value

            self.notifications_ref.document(notification.notification_id).set(notification_dict)
            logging.info(f"{n_type.value} notification created: {sender_id} -> {recipient_id}")
            return notification_dict

        except Exception as e:
            logging.error(f"Error while creating notification: {e}", exc_info=True)
            return None

    def get_notifications(self, user_id: str, page: int, limit: int) -> Tuple[List[Dict[str, Any]], bool]:
        """One page of the user's notifications, newest first."""
        query = self.notifications_ref.where('recipient_id', '==', user_id) \
            .order_by('created_at', direction=firestore.Query.DESCENDING)
        docs = query.offset((page - 1) * limit).limit(limit).stream()
        notifications = [doc.to_dict() for doc in docs]
        return notifications, len(notifications) == limit

    def count_unread(self, user_id: str) -> int:
        query = self.notifications_ref.where('recipient_id', '==', user_id).where('is_read', '==', False)
        count_result = query.count().get()
        return count_result[0][0].value

    def mark_as_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """Mark one notification as read. Only its recipient may do so."""
        notification_ref = self.notifications_ref.document(notification_id)
        doc = notification_ref.get()
        if not doc.exists:
            raise LookupError("Notification not found.")
        if doc.to_dict().get('recipient_id') != user_id:
            raise PermissionError("You cannot modify this notification.")

        notification_ref.update({'is_read': True})
        return notification_ref.get().to_dict()

    def mark_all_as_read(self, user_id: str) -> int:
        """Mark every unread notification of the user as read; returns how many changed."""
        docs = self.notifications_ref.where('recipient_id', '==', user_id).where('is_read', '==', False).stream()
        batch = self.db.batch()
        updated = 0
        for doc in docs:
            batch.update(doc.reference, {'is_read': True})
            updated += 1
            # Firestore caps a batch at 500 writes
            if updated % 500 == 0:
                batch.commit()
                batch = self.db.batch()
        batch.commit()
        logging.info(f"Marked {updated} notifications as read for user {user_id}")
        return updated
