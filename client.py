import requests
from typing import Optional


class TrackerClient:
    """Simple REST client for the training tracker API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        api_token: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"X-API-Key": api_token} if api_token else {}
        self.timeout = timeout

    def _get(self, path: str, **params):
        resp = requests.get(
            f"{self.base_url}{path}",
            params=params,
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def _send(self, method: str, path: str, **params):
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            params={k: v for k, v in params.items() if v is not None},
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def today(self, user_id: Optional[str] = None) -> dict:
        if user_id is None:
            return self._get("/today")
        return self._get("/today", user_id=user_id)

    def start_session(
        self,
        user_id: str,
        template_id: Optional[int] = None,
        bodyweight: Optional[float] = None,
    ) -> dict:
        return self._send(
            "POST",
            "/sessions",
            user_id=user_id,
            template_id=template_id,
            bodyweight=bodyweight,
        )

    def toggle_exercise(self, record_id: int, completed: bool) -> dict:
        return self._send(
            "PUT", f"/sessions/exercises/{record_id}", completed=str(completed).lower()
        )

    def log_set(
        self,
        session_id: int,
        exercise_id: int,
        weight: float,
        reps: int,
        rir: Optional[int] = None,
        warmup: bool = False,
    ) -> int:
        data = self._send(
            "POST",
            f"/sessions/{session_id}/sets",
            exercise_id=exercise_id,
            weight=weight,
            reps=reps,
            rir=rir,
            warmup=str(warmup).lower(),
        )
        return data["id"]

    def update_set(self, set_id: int, clear_rir: bool = False, **fields) -> dict:
        if clear_rir:
            fields["clear_rir"] = "true"
        return self._send("PUT", f"/sessions/sets/{set_id}", **fields)

    def finish_session(self, session_id: int) -> dict:
        return self._send("POST", f"/sessions/{session_id}/finish")

    def log_diet(self, user_id: str, protein_g: float, **params) -> str:
        data = self._send("POST", "/diet", user_id=user_id, protein_g=protein_g, **params)
        return data["logged_on"]

    def diet_history(self, user_id: str, **params) -> list:
        return self._get("/diet", user_id=user_id, **params)

    def log_bodyweight(self, user_id: str, weight: float, **params) -> str:
        data = self._send("POST", "/bodyweight", user_id=user_id, weight=weight, **params)
        return data["logged_on"]

    def streaks(self, user_id: str) -> dict:
        return self._get("/stats/streaks", user_id=user_id)
