import helper  # noqa
import unittest
from unittest import mock
import logging
import dns.resolver
import litetx
from helper import async_test
from litetx.discovery import (
    get_all_instances,
    get_all_instances_async,
    get_internal_instance_domain,
    parse_instances,
)


class FakeTXT:
    def __init__(self, *strings: bytes):
        self.strings = strings


class Test(unittest.TestCase):
    def test_internal_instance_domain(self):
        self.assertEqual(
            get_internal_instance_domain("5ef6ddf5", "myapp", 8081),
            "http://5ef6ddf5.vm.myapp.internal:8081",
        )

    def test_internal_instance_domain_requires_port(self):
        with self.assertRaises(litetx.ConfigurationError) as ctx:
            get_internal_instance_domain("5ef6ddf5", "myapp", None)
        self.assertEqual(ctx.exception.setting, "INTERNAL_PORT")

    def test_internal_instance_domain_requires_app_name(self):
        with self.assertRaises(litetx.ConfigurationError) as ctx:
            get_internal_instance_domain("5ef6ddf5", None, 8081)
        self.assertEqual(ctx.exception.setting, "FLY_APP_NAME")

    def test_parse_instances(self):
        self.assertEqual(
            parse_instances(["5ef6ddf5 maa,5ef6ddf6 sjc", "5ef6ddf7 ams,broken,"]),
            {"5ef6ddf5": "maa", "5ef6ddf6": "sjc", "5ef6ddf7": "ams"},
        )

    def test_without_app_name_is_only_local(self):
        self.assertEqual(get_all_instances(None, "thishost"), {"thishost": "local"})

    def test_reads_txt_records(self):
        with mock.patch(
            "dns.resolver.resolve",
            return_value=[FakeTXT(b"5ef6ddf5 maa,5ef6ddf6 sjc")],
        ) as resolve:
            instances = get_all_instances("myapp", "thishost")
        resolve.assert_called_once_with("vms.myapp.internal", "TXT")
        self.assertEqual(instances, {"5ef6ddf5": "maa", "5ef6ddf6": "sjc"})

    def test_lookup_failure_falls_back_to_self(self):
        with mock.patch("dns.resolver.resolve", side_effect=dns.resolver.NXDOMAIN()):
            with self.assertLogs(level=logging.WARNING):
                instances = get_all_instances("myapp", "thishost", "ams")
        self.assertEqual(instances, {"thishost": "ams"})

    def test_lookup_failure_without_region(self):
        with mock.patch("dns.resolver.resolve", side_effect=dns.resolver.NoAnswer()):
            instances = get_all_instances("myapp", "thishost")
        self.assertEqual(instances, {"thishost": "local"})

    @async_test
    async def test_async_reads_txt_records(self):
        with mock.patch(
            "dns.asyncresolver.resolve",
            new=mock.AsyncMock(return_value=[FakeTXT(b"5ef6ddf5 maa", b",5ef6ddf6 sjc")]),
        ):
            instances = await get_all_instances_async("myapp", "thishost")
        self.assertEqual(instances, {"5ef6ddf5": "maa", "5ef6ddf6": "sjc"})

    @async_test
    async def test_async_lookup_failure_falls_back_to_self(self):
        with mock.patch(
            "dns.asyncresolver.resolve",
            new=mock.AsyncMock(side_effect=dns.resolver.NXDOMAIN()),
        ):
            instances = await get_all_instances_async("myapp", "thishost", "sjc")
        self.assertEqual(instances, {"thishost": "sjc"})


if __name__ == "__main__":
    unittest.main()
