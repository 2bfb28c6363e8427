import helper  # noqa
import unittest
import asyncio
from typing import List
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
import litetx
from helper import LiteFSDir, async_test
from litetx.aiohttp_middleware import (
    litefs_middlewares,
    set_tx_number_middleware,
    transactional_consistency_middleware,
)


EPOCH_EXPIRY = "expires=Thu, 01 Jan 1970 00:00:00 GMT"


async def index(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def other_cookie(request: web.Request) -> web.Response:
    response = web.Response(text="ok")
    response.set_cookie("other", "cookie")
    if "multiple" in request.query:
        name, value = request.query["multiple"].split("=")
        response.set_cookie(name, value)
    return response


async def redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/")


def create_app(middlewares: List) -> web.Application:
    app = web.Application(middlewares=middlewares)
    app.router.add_get("/", index)
    app.router.add_post("/", index)
    app.router.add_post("/other-cookie", other_cookie)
    app.router.add_post("/redirect", redirect)
    return app


def find_cookie(set_cookies: List[str], name: str) -> str:
    for header in set_cookies:
        if header.startswith(f"{name}="):
            return header
    raise AssertionError(f"no {name} cookie in {set_cookies}")


class Test(unittest.TestCase):
    def setUp(self):
        self.litefs = LiteFSDir()
        self.node = litetx.AsyncNode(self.litefs.config(timeout_ms=100))

    def tearDown(self):
        self.litefs.cleanup()

    def client(self, middlewares=None) -> TestClient:
        if middlewares is None:
            middlewares = litefs_middlewares(self.node)
        return TestClient(TestServer(create_app(middlewares)))

    @async_test
    async def test_proceeds_when_on_primary(self):
        self.litefs.setup_primary()
        async with self.client() as client:
            response = await client.get("/")
            self.assertEqual(response.status, 200)
            self.assertNotIn("fly-replay", response.headers)
            self.assertEqual(response.headers.getall("Set-Cookie", []), [])

    @async_test
    async def test_deletes_an_invalid_txnum_cookie(self):
        self.litefs.setup_primary()
        async with self.client() as client:
            response = await client.get("/", headers={"Cookie": "txnum=invalid"})
            self.assertEqual(response.status, 200)
            self.assertNotIn("fly-replay", response.headers)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertIn(EPOCH_EXPIRY, txnum)

    @async_test
    async def test_deletes_cookie_if_user_is_ahead_of_primary(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(1)
        async with self.client() as client:
            response = await client.get("/", headers={"Cookie": "txnum=2"})
            self.assertEqual(response.status, 200)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertIn(EPOCH_EXPIRY, txnum)

    @async_test
    async def test_replica_lets_user_through_when_up_to_date(self):
        self.litefs.setup_replica()
        self.litefs.setup_tx_number(2)
        async with self.client() as client:
            response = await client.get("/", headers={"Cookie": "txnum=2"})
            self.assertEqual(response.status, 200)
            self.assertNotIn("fly-replay", response.headers)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertIn(EPOCH_EXPIRY, txnum)

    @async_test
    async def test_waits_for_tx_number_on_replica(self):
        self.litefs.setup_replica()
        self.litefs.setup_tx_number(2)
        async with self.client() as client:
            pending = asyncio.ensure_future(
                client.get("/", headers={"Cookie": "txnum=3"})
            )
            await asyncio.sleep(0.01)
            self.litefs.setup_tx_number(3)
            response = await pending
            self.assertEqual(response.status, 200)
            self.assertNotIn("fly-replay", response.headers)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertIn(EPOCH_EXPIRY, txnum)

    @async_test
    async def test_replays_on_replica_if_too_slow(self):
        primary = self.litefs.setup_replica()
        self.litefs.setup_tx_number(2)
        async with self.client() as client:
            response = await client.get("/", headers={"Cookie": "txnum=3"})
            self.assertEqual(response.status, 409)
            self.assertEqual(response.headers["fly-replay"], f"instance={primary}")

    @async_test
    async def test_set_tx_number_does_nothing_on_replica(self):
        self.litefs.setup_replica()
        self.litefs.setup_tx_number(1)
        async with self.client([set_tx_number_middleware(self.node)]) as client:
            response = await client.post("/")
            self.assertEqual(response.status, 200)
            self.assertEqual(response.headers.getall("Set-Cookie", []), [])

    @async_test
    async def test_set_tx_number_does_nothing_on_get_requests(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(1)
        async with self.client() as client:
            response = await client.get("/")
            self.assertEqual(response.status, 200)
            self.assertEqual(response.headers.getall("Set-Cookie", []), [])

    @async_test
    async def test_set_tx_number_sets_the_cookie(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(1)
        async with self.client() as client:
            response = await client.post("/")
            self.assertEqual(response.status, 200)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertEqual(litetx.read_tx_cookie(txnum), "1")

    @async_test
    async def test_set_tx_number_does_not_override_other_cookies(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(1)
        async with self.client() as client:
            response = await client.post(
                "/other-cookie", params={"multiple": "anotherother=anotherothervalue"}
            )
            self.assertEqual(response.status, 200)
            set_cookies = response.headers.getall("Set-Cookie")
            self.assertEqual(litetx.read_tx_cookie(find_cookie(set_cookies, "txnum")), "1")
            self.assertIn("other=cookie", find_cookie(set_cookies, "other"))
            self.assertIn(
                "anotherother=anotherothervalue",
                find_cookie(set_cookies, "anotherother"),
            )

    @async_test
    async def test_fresh_cookie_comes_after_deletion(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(4)
        async with self.client() as client:
            response = await client.post("/", headers={"Cookie": "txnum=3"})
            self.assertEqual(response.status, 200)
            txnums = [
                h for h in response.headers.getall("Set-Cookie") if h.startswith("txnum=")
            ]
            self.assertEqual(len(txnums), 2)
            self.assertIn(EPOCH_EXPIRY, txnums[0])
            self.assertEqual(litetx.read_tx_cookie(txnums[1]), "4")

    @async_test
    async def test_set_tx_number_on_raised_redirect(self):
        self.litefs.setup_primary()
        self.litefs.setup_tx_number(7)
        async with self.client() as client:
            response = await client.post("/redirect", allow_redirects=False)
            self.assertEqual(response.status, 302)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertEqual(litetx.read_tx_cookie(txnum), "7")

    @async_test
    async def test_ensure_primary_does_nothing_on_primary(self):
        self.litefs.setup_primary()
        async with self.client() as client:
            response = await client.post("/")
            self.assertEqual(response.status, 200)

    @async_test
    async def test_ensure_primary_replays_on_replica(self):
        primary = self.litefs.setup_replica()
        async with self.client() as client:
            response = await client.post("/")
            self.assertEqual(response.status, 409)
            self.assertEqual(response.headers["fly-replay"], f"instance={primary}")

    @async_test
    async def test_ensure_primary_lets_reads_through_on_replica(self):
        self.litefs.setup_replica()
        async with self.client() as client:
            response = await client.get("/")
            self.assertEqual(response.status, 200)

    @async_test
    async def test_consistency_middleware_alone(self):
        self.litefs.setup_replica()
        self.litefs.setup_tx_number(5)
        async with self.client([transactional_consistency_middleware(self.node)]) as client:
            response = await client.get("/", headers={"Cookie": "txnum=5"})
            self.assertEqual(response.status, 200)
            txnum = find_cookie(response.headers.getall("Set-Cookie"), "txnum")
            self.assertIn(EPOCH_EXPIRY, txnum)


if __name__ == "__main__":
    unittest.main()
