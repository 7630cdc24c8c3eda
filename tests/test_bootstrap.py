import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from plugin_settings import PluginSettings, SettingsStore

from app.bootstrap import READY, UNINITIALIZED, BootstrapReconciler
from app.provisioning import SCHEMA_KEY, provision_svg_model
from app.stores import MemorySchemaStore


class UnreachableSchemaStore(MemorySchemaStore):
    async def find_by_api_key(self, api_key: str) -> dict | None:
        self.calls.append(("find_by_api_key", api_key))
        raise RuntimeError("connection reset")


class CountingProvisioner:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, schema) -> str:
        self.calls += 1
        return await provision_svg_model(schema)


class TestBootstrapReconciler(unittest.IsolatedAsyncioTestCase):
    async def test_recovers_existing_model_without_provisioning(self) -> None:
        schema = MemorySchemaStore()
        existing = await schema.create_item_type({"name": "Plugin SVG", "api_key": SCHEMA_KEY})
        store = SettingsStore()
        provisioner = CountingProvisioner()
        reconciler = BootstrapReconciler(store, schema)
        self.assertEqual(await reconciler.reconcile(), READY)
        self.assertEqual(await reconciler.complete_setup(provisioner), READY)
        self.assertEqual(provisioner.calls, 0)
        self.assertTrue(store.get().is_ready)
        self.assertEqual(store.get().managed_model_id, existing["id"])
        self.assertEqual([c[0] for c in schema.calls].count("create_item_type"), 1)

    async def test_missing_model_stays_uninitialized(self) -> None:
        store = SettingsStore()
        reconciler = BootstrapReconciler(store, MemorySchemaStore())
        self.assertEqual(await reconciler.reconcile(), UNINITIALIZED)
        self.assertEqual(store.history(), [])

    async def test_ready_is_terminal(self) -> None:
        schema = MemorySchemaStore()
        store = SettingsStore(initial=PluginSettings().mark_ready("m1"))
        reconciler = BootstrapReconciler(store, schema)
        self.assertEqual(await reconciler.reconcile(), READY)
        self.assertEqual(await reconciler.reconcile(), READY)
        self.assertEqual(schema.calls, [])
        self.assertEqual(store.history(), [])

    async def test_probe_failure_stays_uninitialized(self) -> None:
        store = SettingsStore()
        reconciler = BootstrapReconciler(store, UnreachableSchemaStore())
        self.assertEqual(await reconciler.reconcile(), UNINITIALIZED)
        self.assertFalse(store.get().setup_complete)

    async def test_complete_setup_provisions_once(self) -> None:
        schema = MemorySchemaStore()
        store = SettingsStore()
        provisioner = CountingProvisioner()
        reconciler = BootstrapReconciler(store, schema)
        self.assertEqual(await reconciler.complete_setup(provisioner), READY)
        self.assertEqual(await reconciler.complete_setup(provisioner), READY)
        self.assertEqual(provisioner.calls, 1)
        found = await schema.find_by_api_key(SCHEMA_KEY)
        self.assertEqual(store.get().managed_model_id, found["id"])


if __name__ == "__main__":
    unittest.main()
