import logging
import time
from datetime import datetime, timezone
from typing import Any

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class CodeforcesClient:
    """
    Wrapper over the Codeforces API used by the sync pass.

    Every public method degrades to an empty result (and a warning in the log)
    when the upstream call fails; callers never see the exception.
    """

    _last_request_at = 0.0

    @classmethod
    def _base_url(cls) -> str:
        return getattr(settings, "CF_API_URL", "https://codeforces.com/api").rstrip("/")

    @classmethod
    def _throttle(cls) -> None:
        interval = float(getattr(settings, "CF_REQUEST_INTERVAL_SECONDS", 0) or 0)
        if interval <= 0:
            return
        wait = cls._last_request_at + interval - time.monotonic()
        if wait > 0:
            time.sleep(wait)
        cls._last_request_at = time.monotonic()

    @classmethod
    def _request(cls, method: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{cls._base_url()}/{method}"
        timeout = getattr(settings, "CF_TIMEOUT_SECONDS", 10)
        cls._throttle()
        try:
            response = requests.get(url, params=params, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            return {"status": "FAIL", "error": str(exc)}

        try:
            data = response.json()
        except ValueError:
            return {"status": "FAIL", "error": f"invalid JSON (HTTP {response.status_code})"}

        if not isinstance(data, dict):
            return {"status": "FAIL", "error": f"unexpected payload (HTTP {response.status_code})"}

        if data.get("status") != "OK":
            return {"status": "FAIL", "error": data.get("comment", "") or "upstream status not OK"}

        return {"status": "OK", "result": data.get("result")}

    @staticmethod
    def fetch_solved_set(handle: str) -> set[str]:
        """
        Retorna o conjunto de problemas aceitos no formato "contestId-index".
        """
        result = CodeforcesClient._request(
            "user.status",
            {"handle": handle, "from": 1, "count": 100000},
        )
        if result["status"] != "OK":
            logger.warning("Failed to fetch solved problems for %s: %s", handle, result.get("error"))
            return set()

        solved = set()
        try:
            for sub in result["result"] or []:
                problem = sub.get("problem") or {}
                if sub.get("verdict") == "OK" and problem.get("contestId") and problem.get("index"):
                    solved.add(f"{problem['contestId']}-{problem['index']}")
        except Exception as e:
            logger.warning("Failed to read solved problems for %s: %s", handle, e)
            return set()
        return solved

    @staticmethod
    def fetch_contest_problems(contest_id) -> list[dict[str, Any]]:
        result = CodeforcesClient._request(
            "contest.standings",
            {"contestId": contest_id, "from": 1, "count": 1},
        )
        if result["status"] != "OK":
            logger.warning("Failed to fetch problems for contest %s: %s", contest_id, result.get("error"))
            return []

        standings = result["result"]
        if not isinstance(standings, dict):
            logger.warning("Unexpected standings payload for contest %s", contest_id)
            return []

        try:
            return [
                {
                    "contest_id": contest_id,
                    "index": problem.get("index"),
                    "name": problem.get("name", ""),
                }
                for problem in standings.get("problems") or []
            ]
        except Exception as e:
            logger.warning("Failed to read problems for contest %s: %s", contest_id, e)
            return []

    @staticmethod
    def fetch_contest_history(handle: str) -> list[dict[str, Any]]:
        """
        Busca os contests com rating do usuario, na ordem devolvida pela API,
        e conta quantos problemas de cada contest ainda nao foram resolvidos.

        One contest.standings call per contest, issued sequentially.
        """
        result = CodeforcesClient._request("user.rating", {"handle": handle})
        if result["status"] != "OK":
            logger.warning("Skipping contest history for %s: %s", handle, result.get("error"))
            return []

        try:
            history = [
                {
                    "contest_id": row["contestId"],
                    "name": row.get("contestName", ""),
                    "date": datetime.fromtimestamp(row["ratingUpdateTimeSeconds"], tz=timezone.utc),
                    "rank": row.get("rank", 0),
                    "rating_before": row.get("oldRating", 0),
                    "rating_after": row.get("newRating", 0),
                    "problems_unsolved": 0,
                }
                for row in result["result"] or []
            ]

            solved = CodeforcesClient.fetch_solved_set(handle)
            for contest in history:
                problems = CodeforcesClient.fetch_contest_problems(contest["contest_id"])
                contest["problems_unsolved"] = sum(
                    1
                    for problem in problems
                    if f"{contest['contest_id']}-{problem['index']}" not in solved
                )
        except Exception as e:
            logger.warning("Skipping contest history for %s: %s", handle, e)
            return []

        return history

    @staticmethod
    def fetch_problem_stats(handle: str) -> list[dict[str, Any]]:
        """
        Lista as submissoes aceitas do usuario como eventos de resolucao.
        """
        result = CodeforcesClient._request("user.status", {"handle": handle})
        if result["status"] != "OK":
            logger.warning("Skipping problem stats for %s: %s", handle, result.get("error"))
            return []

        try:
            events = []
            for sub in result["result"] or []:
                if sub.get("verdict") != "OK":
                    continue
                problem = sub.get("problem") or {}
                events.append({
                    "problem_id": f"{problem.get('contestId', '')}{problem.get('index', '')}",
                    "solved_at": datetime.fromtimestamp(sub["creationTimeSeconds"], tz=timezone.utc),
                    "rating": problem.get("rating") or 0,
                })
        except Exception as e:
            logger.warning("Skipping problem stats for %s: %s", handle, e)
            return []

        return events
