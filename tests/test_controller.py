# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest
from unittest.mock import MagicMock

from dummy.dummy_engine import DummyClusterEngine, start_controller

from eeco.scheduler import Controller, ControllerState, CpuType, PlacementOutcome, PowerState, Tier, VmType
from eeco.utils import DummyLogger
from eeco.utils.exception import InvalidConfigError

TWO_RUNNING = {"tiers": {"max_running": 2, "min_running": 1, "standby_size": 0}}


class TestControllerInit(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 20)
        self.controller = start_controller(self.engine)

    def test_init_partitions_machines(self):
        partition = self.controller.partition

        self.assertEqual(ControllerState.RUNNING, self.controller.state)
        self.assertListEqual(list(range(12)), partition.members(Tier.RUNNING))
        self.assertListEqual([12, 13, 14, 15], partition.members(Tier.STANDBY))
        self.assertListEqual([16, 17, 18, 19], partition.members(Tier.OFF))

    def test_init_creates_one_vm_per_running_machine(self):
        self.assertEqual(12, len(self.engine.commands_of("vm_create")))

        for machine_id in range(12):
            hosted = [vm for vm in self.engine.vms.values() if vm.machine_id == machine_id]
            self.assertEqual(1, len(hosted))
            self.assertEqual(VmType.LINUX, hosted[0].vm_type)

    def test_init_powers_down_spare_machines(self):
        states = {command[1]: command[2] for command in self.engine.commands_of("machine_set_state")}

        self.assertEqual(8, len(states))
        for machine_id in range(12, 16):
            self.assertEqual(PowerState.STANDBY, states[machine_id])
        for machine_id in range(16, 20):
            self.assertEqual(PowerState.OFF, states[machine_id])

    def test_init_twice_is_ignored(self):
        self.engine.clear_commands()
        self.controller.init()

        self.assertListEqual([], self.engine.commands)
        self.assertEqual(12, len(self.controller.registry))

    def test_metrics_after_init(self):
        metrics = self.controller.get_metrics()

        self.assertEqual(12, metrics["vms_created"])
        self.assertEqual(8, metrics["state_changes_issued"])
        self.assertEqual(0, metrics["placed_tasks"])
        self.assertEqual(12, metrics["running_machines"])
        self.assertEqual(4, metrics["standby_machines"])
        self.assertEqual(4, metrics["off_machines"])
        self.assertTrue("sla_violations" in metrics)

    def test_report(self):
        report = self.controller.report()

        self.assertEqual(100.0, report["sla_compliance"]["SLA0"])
        self.assertEqual(0.0, report["cluster_energy"])


class TestControllerVmTypes(unittest.TestCase):
    def test_power_machines_run_aix(self):
        engine = DummyClusterEngine.build([CpuType.POWER, CpuType.ARM])
        start_controller(engine)

        self.assertEqual(VmType.AIX, engine.vms[0].vm_type)
        self.assertEqual(VmType.LINUX, engine.vms[1].vm_type)

    def test_default_type_override(self):
        engine = DummyClusterEngine.build([CpuType.X86])
        start_controller(engine, config={"vm": {"default_type_by_cpu": {"X86": "WIN"}}})

        self.assertEqual(VmType.WIN, engine.vms[0].vm_type)


class TestControllerLifecycle(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 2)
        self.engine.add_task(1, CpuType.X86)

    def test_events_before_init_are_ignored(self):
        controller = Controller(self.engine, config=TWO_RUNNING, logger=DummyLogger())

        self.assertIsNone(controller.new_task(0, 1))
        self.assertIsNone(controller.periodic_check(0))
        self.assertListEqual([], self.engine.commands)
        self.assertEqual(ControllerState.UNINITIALIZED, controller.state)

    def test_shutdown_before_init_is_ignored(self):
        controller = Controller(self.engine, config=TWO_RUNNING, logger=DummyLogger())
        controller.shutdown(0)

        self.assertEqual(ControllerState.UNINITIALIZED, controller.state)

    def test_shutdown_each_vm_once(self):
        controller = start_controller(self.engine, config=TWO_RUNNING)
        controller.shutdown(10)

        self.assertEqual(ControllerState.STOPPED, controller.state)
        self.assertListEqual([("vm_shutdown", 0), ("vm_shutdown", 1)], self.engine.commands_of("vm_shutdown"))

        controller.shutdown(11)

        self.assertEqual(2, len(self.engine.commands_of("vm_shutdown")))
        self.assertEqual(2, controller.get_metrics()["vms_shut_down"])

    def test_shutdown_skips_migrating_vm(self):
        controller = start_controller(self.engine, config=TWO_RUNNING)
        self.assertTrue(controller.memory_warning(1, 0))
        self.assertSetEqual({0}, controller.migrating_vms)

        controller.shutdown(2)

        self.assertListEqual([("vm_shutdown", 1)], self.engine.commands_of("vm_shutdown"))

    def test_events_after_shutdown_are_ignored(self):
        controller = start_controller(self.engine, config=TWO_RUNNING)
        controller.shutdown(1)
        self.engine.clear_commands()

        self.assertIsNone(controller.new_task(2, 1))
        self.assertListEqual([], self.engine.commands)


class TestControllerErrors(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 2)
        self.controller = start_controller(self.engine, config=TWO_RUNNING)
        self.engine.clear_commands()

    def test_unknown_ids_are_not_fatal(self):
        placement = self.controller.new_task(1, 999)

        self.assertEqual(PlacementOutcome.FAILED, placement.outcome)
        self.assertFalse(self.controller.task_complete(1, 999))
        self.assertFalse(self.controller.migration_complete(1, 999))
        self.assertFalse(self.controller.memory_warning(1, 999))
        self.assertFalse(self.controller.sla_warning(1, 999))
        self.assertFalse(self.controller.state_change_complete(1, 999))

        self.assertListEqual([], self.engine.commands)
        self.assertEqual(ControllerState.RUNNING, self.controller.state)
        # An unknown task is not a placement failure.
        self.assertEqual(0, self.controller.get_metrics()["failed_placements"])

    def test_invariant_violation_is_logged(self):
        logger = MagicMock()
        engine = DummyClusterEngine.build([CpuType.X86] * 3)
        controller = start_controller(engine, config=TWO_RUNNING, logger=logger)

        # Machine 2 is in the off tier list but lost its membership.
        controller.partition._membership.pop(2)

        self.assertIsNone(controller.periodic_check(1))
        logger.error.assert_called()
        self.assertEqual(ControllerState.RUNNING, controller.state)


class TestControllerConfig(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 5)

    def test_override(self):
        controller = start_controller(
            self.engine, config={"tiers": {"max_running": 2, "min_running": 1, "standby_size": 1}}
        )

        self.assertEqual(2, controller.config.tiers.max_running)
        self.assertEqual(0.7, controller.config.thresholds.overload)
        self.assertListEqual([0, 1], controller.partition.members(Tier.RUNNING))
        self.assertListEqual([2], controller.partition.members(Tier.STANDBY))
        self.assertListEqual([3, 4], controller.partition.members(Tier.OFF))

    def test_unknown_key(self):
        with self.assertRaises(InvalidConfigError):
            Controller(self.engine, config={"tiers": {"max_runing": 2}}, logger=DummyLogger())

    def test_unknown_vm_type(self):
        with self.assertRaises(InvalidConfigError):
            Controller(self.engine, config={"vm": {"default_type": "SOLARIS"}}, logger=DummyLogger())

    def test_inconsistent_tiers(self):
        with self.assertRaises(InvalidConfigError):
            Controller(self.engine, config={"tiers": {"min_running": 20}}, logger=DummyLogger())


if __name__ == "__main__":
    unittest.main()
