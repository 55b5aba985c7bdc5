#!/usr/bin/env python3
"""
Verification code cleanup

Deletes verification codes whose expiry is more than a day in the past.
Consumed and superseded codes keep their expiry, so they go the same way.
Meant to be run from cron.
"""

import asyncio
import sys

from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from repositories.verification_code_repository import (
    COLLECTION_NAME,
    VerificationCodeRepository,
)
from services.verification_service import VerificationService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


async def run_cleanup(settings: AppSettings) -> int:
    client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
    try:
        repo = VerificationCodeRepository(client[settings.db.db_name][COLLECTION_NAME])
        return await VerificationService(repo).cleanup_stale_codes()
    finally:
        await client.close()


def main() -> None:
    settings = AppSettings()
    setup_logging(settings.logging)
    try:
        deleted = asyncio.run(run_cleanup(settings))
    except KeyboardInterrupt:
        log.info("cleanup_interrupted")
    except Exception as e:
        log.error("cleanup_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    else:
        log.info("cleanup_finished", deleted=deleted)


if __name__ == "__main__":
    main()
