"""
Publish Scheduler
=================

Background job that publishes drafts whose publish_date has arrived and
hands each one to the newsletter automation gate.

Per article: draft without a date is left alone, draft with a due date is
published, draft with a future date waits, published is never touched.
The transition is a conditional UPDATE, so an overlapping tick (or a
second process) finds nothing left to do.
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from newsdesk.core.database import utc_now

logger = logging.getLogger(__name__)


class PublishScheduler:

    JOB_ID = 'publish_scheduled_articles'

    def __init__(self, articles, automation, settings_store=None, interval_seconds=60,
                 log_service=None):
        self.articles = articles
        self.automation = automation
        self.settings_store = settings_store
        self.interval_seconds = interval_seconds
        self.log_service = log_service
        self._scheduler = None

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        """Run a tick now and then every interval_seconds"""
        if self.running:
            return
        self._scheduler = BackgroundScheduler(daemon=True, timezone=timezone.utc)
        self._scheduler.add_job(
            self.run_once,
            'interval',
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        logger.info(f"Publish scheduler started (every {self.interval_seconds}s)")

    def stop(self):
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Publish scheduler stopped")
        self._scheduler = None

    def _log_failure(self, message, error, details):
        logger.exception(message)
        if self.log_service is not None:
            self.log_service.log_error_with_traceback('scheduler', error, details)

    def run_once(self, now=None):
        """
        One scheduler tick.

        Returns:
            dict: checked / published / failed article ids and the
            newsletter outcome per published article
        """
        now = now or utc_now()
        summary = {'checked': 0, 'published': [], 'failed': [], 'newsletters': {}}

        if self.settings_store is not None:
            try:
                self.settings_store.refresh()
            except Exception as e:
                self._log_failure('Failed to refresh site settings before scheduler tick', e, None)

        try:
            due = self.articles.due_for_publish(now)
        except Exception as e:
            self._log_failure('Scheduler could not load due articles', e, None)
            return summary

        summary['checked'] = len(due)
        if not due:
            logger.debug('No scheduled articles to publish')
            return summary

        logger.info(f"Found {len(due)} scheduled articles to publish")

        for article in due:
            try:
                if not self.articles.publish_if_due(article['id'], now):
                    continue
                summary['published'].append(article['id'])
                logger.info(f"Published scheduled article: {article['title']} (ID: {article['id']})")

                result = self.automation.handle_published(article)
                summary['newsletters'][article['id']] = result
            except Exception as e:
                summary['failed'].append(article['id'])
                self._log_failure(f"Error processing scheduled article {article['id']}", e,
                                  {'article_id': article['id']})

        if self.log_service is not None and summary['published']:
            self.log_service.info('scheduler', f"Published {len(summary['published'])} scheduled articles",
                                  {'article_ids': summary['published']})
        return summary
