import functools
import pathlib
import sys
import unittest
from unittest import mock

from fastapi.testclient import TestClient


ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main
import server


class TestService(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(server.app)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_root_lists_endpoints(self) -> None:
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("/simulate", response.text)

    def test_simulate_returns_history(self) -> None:
        with mock.patch.object(main.core, "PipeCourse", functools.partial(main.PipeCourse, gap=20.0)):
            response = self.client.get("/simulate", params={"seed": 3, "generations": 2, "population": 5})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["seed"], 3)
        self.assertEqual([entry["generation"] for entry in payload["generations"]], [1, 2])
        self.assertEqual(set(payload["generations"][0]["best_parameters"]), set(main.GENE_NAMES))

    def test_simulate_rejects_empty_population(self) -> None:
        response = self.client.get("/simulate", params={"population": 0})
        self.assertEqual(response.status_code, 422)
        self.assertIn("Population size", response.json()["detail"])


if __name__ == "__main__":
    unittest.main()
