"""
Campaign Dispatcher
===================

Broadcasts one newsletter to a list of recipients. The campaign row is
written before the first send so an interrupted run leaves an auditable
'sending' record; per-recipient failures are counted, never fatal.
"""

import math
import time
import sqlite3
import logging

from newsdesk.core.database import utc_now, to_db_timestamp
from newsdesk.core.errors import Conflict, ValidationError

logger = logging.getLogger(__name__)

CAMPAIGN_TYPES = ('manual', 'automated')


def _as_recipient(value):
    if isinstance(value, str):
        return {'id': None, 'email': value, 'name': None}
    return {'id': value.get('id'), 'email': value['email'], 'name': value.get('name')}


class CampaignDispatcher:

    def __init__(self, db, email_service, batch_size=10, batch_delay=1.0,
                 log_service=None, sleep=time.sleep):
        self.db = db
        self.email_service = email_service
        self.batch_size = max(1, int(batch_size))
        self.batch_delay = batch_delay
        self.log_service = log_service
        self._sleep = sleep

    def _create_campaign(self, subject, body, total, campaign_type, sent_by, article_id):
        try:
            with self.db.connect() as conn:
                cursor = conn.execute('''
                    INSERT INTO newsletter_campaigns
                    (subject, content, campaign_type, article_id, status,
                     total_subscribers, sent_by, created_at)
                    VALUES (?, ?, ?, ?, 'sending', ?, ?, ?)
                ''', (subject, body, campaign_type, article_id, total, sent_by,
                      to_db_timestamp(utc_now())))
                return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            if campaign_type == 'automated' and 'UNIQUE' in str(e):
                raise Conflict(f"An automated campaign already exists for article {article_id}")
            raise

    def _record_delivery(self, recipient):
        """Bump the subscriber's delivery counters after a successful send"""
        try:
            with self.db.connect() as conn:
                conn.execute('''
                    UPDATE subscribers
                    SET last_email_sent = ?, email_count = email_count + 1
                    WHERE email = ?
                ''', (to_db_timestamp(utc_now()), recipient['email']))
        except sqlite3.Error as e:
            logger.error(f"Failed to update delivery stats for {recipient['email']}: {e}")

    def _update_progress(self, campaign_id, sent_count, failed_count):
        with self.db.connect() as conn:
            conn.execute('''
                UPDATE newsletter_campaigns SET sent_count = ?, failed_count = ?
                WHERE id = ? AND status = 'sending'
            ''', (sent_count, failed_count, campaign_id))

    def send(self, subject, body, recipients, campaign_type='manual', sent_by=None,
             article_id=None, message_factory=None):
        """
        Send a campaign in batches.

        Args:
            subject (str): campaign subject
            body (str): campaign content (stored on the campaign row)
            recipients (list): subscriber dicts ({email, name, id}) or plain addresses
            campaign_type (str): 'manual' or 'automated'
            sent_by (int): user id credited with the send
            article_id (int): article an automated campaign announces
            message_factory (callable): recipient dict -> (subject, html, text);
                defaults to the branded newsletter template around body

        Returns:
            dict: campaign_id, sent_count, failed_count, total_subscribers

        Raises:
            ValidationError: bad arguments or no recipients
            Conflict: an automated campaign for article_id already exists
        """
        if campaign_type not in CAMPAIGN_TYPES:
            raise ValidationError(f"campaign_type must be one of: {', '.join(CAMPAIGN_TYPES)}")
        if not subject:
            raise ValidationError('Subject is required')

        recipients = [_as_recipient(r) for r in recipients or []]
        if not recipients:
            raise ValidationError('No recipients to send to')

        if message_factory is None:
            def message_factory(recipient):
                return self.email_service.render_newsletter(subject, body, recipient['email'])

        total = len(recipients)
        campaign_id = self._create_campaign(subject, body, total, campaign_type, sent_by, article_id)
        logger.info(f"Campaign {campaign_id} ({campaign_type}) started for {total} recipients")

        sent_count = 0
        failed_count = 0
        batches = math.ceil(total / self.batch_size)

        for index in range(batches):
            batch = recipients[index * self.batch_size:(index + 1) * self.batch_size]

            for recipient in batch:
                try:
                    msg_subject, html, text = message_factory(recipient)
                    self.email_service.send(recipient['email'], msg_subject, html, text,
                                            email_type=f"{campaign_type}_newsletter")
                except Exception as e:
                    failed_count += 1
                    logger.error(f"Campaign {campaign_id}: failed to send to {recipient['email']}: {e}")
                    continue

                sent_count += 1
                self._record_delivery(recipient)

            self._update_progress(campaign_id, sent_count, failed_count)

            if index < batches - 1 and self.batch_delay:
                self._sleep(self.batch_delay)

        with self.db.connect() as conn:
            cursor = conn.execute('''
                UPDATE newsletter_campaigns
                SET status = 'sent', sent_at = ?, sent_count = ?, failed_count = ?
                WHERE id = ? AND status = 'sending'
            ''', (to_db_timestamp(utc_now()), sent_count, failed_count, campaign_id))
            if cursor.rowcount != 1:
                logger.warning(f"Campaign {campaign_id} was not in 'sending' state at completion")

        message = f"Campaign {campaign_id} sent: {sent_count} sent, {failed_count} failed"
        if failed_count:
            logger.warning(message)
        else:
            logger.info(message)
        if self.log_service is not None:
            self.log_service.info('newsletter', message, {
                'campaign_id': campaign_id,
                'campaign_type': campaign_type,
                'article_id': article_id,
            })

        return {
            'campaign_id': campaign_id,
            'sent_count': sent_count,
            'failed_count': failed_count,
            'total_subscribers': total,
        }

    def list_campaigns(self, page=1, limit=20):
        """Campaign history, newest first, with the sender's name"""
        with self.db.connect() as conn:
            total = conn.execute('SELECT COUNT(*) FROM newsletter_campaigns').fetchone()[0]
            rows = conn.execute('''
                SELECT c.*, u.name AS sender_name
                FROM newsletter_campaigns c
                LEFT JOIN users u ON c.sent_by = u.id
                ORDER BY c.created_at DESC, c.id DESC
                LIMIT ? OFFSET ?
            ''', (limit, (page - 1) * limit)).fetchall()

        return {
            'campaigns': [dict(row) for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': math.ceil(total / limit) if total else 0,
            }
        }
