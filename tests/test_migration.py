# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest

from dummy.dummy_engine import DummyClusterEngine, start_controller

from eeco.scheduler import CpuType, Priority, SlaClass
from eeco.scheduler.sla import SlaMonitor

THREE_RUNNING = {"tiers": {"max_running": 3, "min_running": 3, "standby_size": 0}}


def load_vm(engine: DummyClusterEngine, vm_id: int, task_ids: list):
    """Put tasks straight into a VM, bypassing the controller."""
    for task_id in task_ids:
        engine.add_task(task_id, engine.vms[vm_id].cpu)
        engine.vm_add_task(vm_id, task_id, Priority.LOW)


class TestMemoryRelief(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86, CpuType.X86, CpuType.ARM, CpuType.X86], memory_size=100)
        self.controller = start_controller(
            self.engine, config={"tiers": {"max_running": 4, "min_running": 4, "standby_size": 0}}
        )

    def test_target_with_half_memory_free(self):
        self.engine.machines[1].base_memory = 60

        self.assertTrue(self.controller.memory_warning(1, 0))
        self.assertListEqual([("vm_migrate", 0, 3)], self.engine.commands_of("vm_migrate"))

    def test_no_target(self):
        for machine_id in (1, 3):
            self.engine.machines[machine_id].base_memory = 60

        self.assertFalse(self.controller.memory_warning(1, 0))
        self.assertListEqual([], self.engine.commands_of("vm_migrate"))

    def test_one_migration_per_vm(self):
        self.assertTrue(self.controller.memory_warning(1, 0))
        self.assertFalse(self.controller.memory_warning(2, 0))

        self.assertEqual(1, len(self.engine.commands_of("vm_migrate")))
        self.assertSetEqual({0}, self.controller.migrating_vms)

    def test_completion(self):
        self.controller.memory_warning(1, 0)
        self.engine.finish_migration(0)

        self.assertTrue(self.controller.migration_complete(2, 0))
        self.assertFalse(self.controller.migration_complete(3, 0))
        self.assertEqual(1, self.controller.registry.get(0).machine_id)
        self.assertEqual(2, len(self.controller.registry.on_machine(1)))


class TestSlaRescue(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 2)
        self.controller = start_controller(
            self.engine, config={"tiers": {"max_running": 2, "min_running": 2, "standby_size": 0}}
        )
        load_vm(self.engine, 0, [1, 2, 3])

    def test_rescue_to_quieter_machine(self):
        self.assertTrue(self.controller.sla_warning(5, 2))

        self.assertEqual(Priority.HIGH, self.engine.priorities[2])
        self.assertListEqual([("vm_migrate", 0, 1)], self.engine.commands_of("vm_migrate"))
        self.assertEqual(1, self.controller.get_metrics()["sla_rescues"])
        self.assertEqual(1, self.controller.get_metrics()["priority_changes_issued"])

    def test_no_quieter_machine(self):
        load_vm(self.engine, 1, [4, 5, 6])

        self.assertFalse(self.controller.sla_warning(5, 2))
        self.assertEqual(Priority.HIGH, self.engine.priorities[2])
        self.assertListEqual([], self.engine.commands_of("vm_migrate"))

    def test_vm_already_migrating(self):
        self.assertTrue(self.controller.sla_warning(5, 2))
        self.assertFalse(self.controller.sla_warning(6, 3))

        self.assertEqual(1, len(self.engine.commands_of("vm_migrate")))

    def test_task_not_hosted_by_controller_vm(self):
        self.engine.add_task(9, CpuType.X86)

        self.assertFalse(self.controller.sla_warning(5, 9))
        self.assertEqual(Priority.HIGH, self.engine.priorities[9])


class TestConsolidation(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 3)

    def _start(self, config: dict):
        controller = start_controller(self.engine, config=config)
        load_vm(self.engine, 0, [1, 2])
        load_vm(self.engine, 1, [3])
        return controller

    def test_least_utilized_moves_to_most_utilized(self):
        controller = self._start(
            dict(THREE_RUNNING, policy={"rebalance_on_periodic_check": False})
        )

        controller.periodic_check(1)

        self.assertListEqual([("vm_migrate", 2, 0)], self.engine.commands_of("vm_migrate"))

    def test_one_consolidation_in_flight(self):
        controller = self._start(THREE_RUNNING)
        controller.periodic_check(1)
        controller.periodic_check(2)

        self.assertEqual(1, len(self.engine.commands_of("vm_migrate")))

        self.engine.finish_migration(2)
        controller.migration_complete(3, 2)
        controller.periodic_check(4)

        # Machine 1 would overload machine 0, nothing else to consolidate.
        self.assertEqual(1, len(self.engine.commands_of("vm_migrate")))

    def test_on_task_complete(self):
        controller = self._start(
            dict(
                THREE_RUNNING,
                policy={"consolidate_on_periodic_check": False, "consolidate_on_task_complete": True}
            )
        )

        controller.periodic_check(1)
        self.assertListEqual([], self.engine.commands_of("vm_migrate"))

        self.engine.finish_task(3)
        controller.task_complete(2, 3)

        self.assertListEqual([("vm_migrate", 1, 0)], self.engine.commands_of("vm_migrate"))


class TestSlaMonitor(unittest.TestCase):
    def test_priority_mapping(self):
        self.assertEqual(Priority.HIGH, SlaMonitor.priority_of(SlaClass.SLA0))
        self.assertEqual(Priority.MID, SlaMonitor.priority_of(SlaClass.SLA1))
        self.assertEqual(Priority.LOW, SlaMonitor.priority_of(SlaClass.SLA2))
        self.assertEqual(Priority.LOW, SlaMonitor.priority_of(SlaClass.SLA3))

    def test_violations_are_counted(self):
        engine = DummyClusterEngine.build([CpuType.X86])
        controller = start_controller(engine, config={"tiers": {"max_running": 1, "min_running": 1, "standby_size": 0}})
        engine.add_task(1, CpuType.X86)
        engine.add_task(2, CpuType.X86)
        engine.violations.add(2)

        self.assertFalse(controller.task_complete(1, 1))
        self.assertTrue(controller.task_complete(2, 2))
        self.assertEqual(1, controller.get_metrics()["sla_violations"])


if __name__ == "__main__":
    unittest.main()
