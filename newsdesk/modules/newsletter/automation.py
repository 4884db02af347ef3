"""
Newsletter Automation Gate
==========================

Decides whether a freshly published article gets an automated newsletter
and, if so, sends it. At most one automated campaign exists per article:
the check here is the fast path, the partial UNIQUE index on
newsletter_campaigns is what actually enforces it.
"""

import logging

from newsdesk.core.errors import Conflict

logger = logging.getLogger(__name__)


def _skipped(reason, article_id):
    return {'status': 'skipped', 'reason': reason, 'article_id': article_id}


class NewsletterAutomation:

    def __init__(self, db, settings_store, subscribers, dispatcher, email_service, log_service=None):
        self.db = db
        self.settings_store = settings_store
        self.subscribers = subscribers
        self.dispatcher = dispatcher
        self.email_service = email_service
        self.log_service = log_service

    def _log(self, level, message, details=None):
        getattr(logger, level)(message)
        if self.log_service is not None:
            self.log_service.log(level, 'newsletter', message, details)

    def automated_campaign_exists(self, article_id):
        with self.db.connect() as conn:
            row = conn.execute('''
                SELECT id FROM newsletter_campaigns
                WHERE campaign_type = 'automated' AND article_id = ?
                LIMIT 1
            ''', (article_id,)).fetchone()
        return row is not None

    def _skip_reason(self, article):
        if not self.settings_store.load().newsletter_automation_enabled:
            return 'automation_disabled'
        if self.automated_campaign_exists(article['id']):
            return 'already_sent'
        if not (article.get('title') or '').strip() or not (article.get('excerpt') or '').strip():
            return 'missing_fields'
        return None

    def should_send(self, article):
        """True when automation is on, nothing was sent for article yet and it has a title and excerpt"""
        return self._skip_reason(article) is None

    def _load_article(self, article_id):
        with self.db.connect() as conn:
            row = conn.execute('''
                SELECT a.*, c.name AS category_name, u.name AS author_name
                FROM articles a
                LEFT JOIN categories c ON a.category_id = c.id
                LEFT JOIN users u ON a.author_id = u.id
                WHERE a.id = ?
            ''', (article_id,)).fetchone()
        return dict(row) if row else None

    def handle_published(self, article):
        """
        Send the automated newsletter for a published article if the gate allows.

        Returns:
            dict: {'status': 'sent', campaign counts...} or
                  {'status': 'skipped', 'reason': ...}
        """
        article_id = article['id']
        article = self._load_article(article_id) or dict(article)

        reason = self._skip_reason(article)
        if reason is not None:
            logger.info(f"Automated newsletter skipped for article {article_id}: {reason}")
            return _skipped(reason, article_id)

        recipients = self.subscribers.active_recipients()
        if not recipients:
            logger.info(f"Automated newsletter skipped for article {article_id}: no active subscribers")
            return _skipped('no_subscribers', article_id)

        prefix = self.settings_store.load().newsletter_subject_prefix

        def message_factory(recipient):
            return self.email_service.render_article_notification(article, recipient['email'], prefix)

        try:
            result = self.dispatcher.send(
                f"{prefix}New Article: {article['title']}",
                f"Automated newsletter for article: {article['title']}",
                recipients,
                campaign_type='automated',
                sent_by=article.get('author_id'),
                article_id=article_id,
                message_factory=message_factory,
            )
        except Conflict:
            self._log('warning', f"Duplicate automated newsletter prevented for article {article_id}",
                      {'article_id': article_id})
            return _skipped('duplicate', article_id)

        self._log('info', f"Automated newsletter sent for article {article_id}: "
                          f"{result['sent_count']} sent, {result['failed_count']} failed", result)
        return dict(result, status='sent', article_id=article_id)
