#!/usr/bin/env python3
"""Issue a batch of key cards from the command line.

Example:
    python tooling/scripts/issue_key_card_batch.py "spring-promo" 500 --output codes.txt

Codes are printed one per line (or written to ``--output``) so they can be
handed to a distributor. A partially persisted batch exits non-zero and
reports how many key cards were stored.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a named batch of unused key cards")
    parser.add_argument("name", help="Human readable batch name.")
    parser.add_argument("count", type=int, help="Number of key cards to issue.")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write issued codes to this file instead of stdout.",
    )
    return parser.parse_args()


async def _run(name: str, count: int) -> tuple[str, list[str], int]:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    from keycard_api.core.settings import settings  # type: ignore import-position
    from keycard_api.db.session import async_session  # type: ignore import-position
    from keycard_api.services.keycards import (  # type: ignore import-position
        BatchIntegrityError,
        BatchIssuer,
        KeyCardRepository,
    )

    async with async_session() as session:
        issuer = BatchIssuer(
            session,
            code_length=settings.key_card_code_length,
            collision_retries=settings.batch_collision_retries,
        )
        try:
            batch = await issuer.create_batch(name, count)
        except BatchIntegrityError as exc:
            batch = exc.batch
            logger.error(
                "Key card batch incomplete",
                batch_id=str(batch.id),
                requested=exc.requested,
                persisted=exc.persisted,
            )
        key_cards = await KeyCardRepository(session).list_by_batch(batch.id)
        return str(batch.id), [key_card.code for key_card in key_cards], batch.count


def main() -> int:
    args = parse_args()
    batch_id, codes, requested = asyncio.run(_run(args.name, args.count))
    if args.output:
        args.output.write_text("\n".join(codes) + "\n")
    else:
        for code in codes:
            print(code)
    if len(codes) != requested:
        return 1
    logger.success("Key card batch issued", batch_id=batch_id, count=len(codes), output=str(args.output or "stdout"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
