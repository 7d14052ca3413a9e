# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import unittest

from dummy.dummy_engine import DummyClusterEngine, start_controller

from eeco.scheduler import CpuType, PlacementOutcome, PowerState, Priority, SlaClass, Tier, VmType

NO_SPARE = {"tiers": {"max_running": 1, "min_running": 1, "standby_size": 0}}


class TestPlacementChain(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 3)
        self.controller = start_controller(
            self.engine, config={"tiers": {"max_running": 3, "min_running": 1, "standby_size": 0}}
        )

    def test_best_fit_spreads_load(self):
        for task_id in range(1, 5):
            self.engine.add_task(task_id, CpuType.X86)

        vm_ids = [self.controller.new_task(task_id, task_id).vm_id for task_id in range(1, 5)]

        # Least loaded first, lowest id on ties.
        self.assertListEqual([0, 1, 2, 0], vm_ids)
        self.assertEqual(4, self.controller.get_metrics()["best_fit_placements"])
        self.assertEqual(4, self.controller.get_metrics()["tasks_added"])

    def test_other_vm_type_falls_back_to_compatible(self):
        self.engine.add_task(1, CpuType.X86, vm_type=VmType.WIN)

        placement = self.controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.COMPATIBLE, placement.outcome)
        self.assertEqual(0, placement.vm_id)

    def test_rejected_candidate_is_skipped(self):
        self.engine.full_vms.add(0)
        self.engine.add_task(1, CpuType.X86)

        placement = self.controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.BEST_FIT, placement.outcome)
        self.assertEqual(1, placement.vm_id)

    def test_migrating_vm_is_not_a_candidate(self):
        self.assertTrue(self.controller.memory_warning(1, 0))
        self.engine.add_task(1, CpuType.X86)

        placement = self.controller.new_task(2, 1)

        self.assertEqual(1, placement.vm_id)


class TestPlacementExpansion(unittest.TestCase):
    def test_powers_on_one_machine_of_the_architecture(self):
        engine = DummyClusterEngine.build([CpuType.X86, CpuType.X86, CpuType.ARM, CpuType.ARM])
        controller = start_controller(engine, config={"tiers": {"max_running": 2, "min_running": 1, "standby_size": 0}})
        self.assertListEqual([2, 3], controller.partition.members(Tier.OFF, cpu=CpuType.ARM))
        engine.clear_commands()
        engine.add_task(1, CpuType.ARM)

        placement = controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.EXPANDED, placement.outcome)
        powered_on = [command for command in engine.commands_of("machine_set_state") if command[2] == PowerState.ACTIVE]
        self.assertListEqual([("machine_set_state", 2, PowerState.ACTIVE)], powered_on)
        self.assertListEqual([("vm_create", VmType.LINUX, CpuType.ARM)], engine.commands_of("vm_create"))
        self.assertEqual(2, engine.vms[placement.vm_id].machine_id)
        self.assertListEqual([1], engine.vms[placement.vm_id].tasks)
        self.assertEqual(Tier.RUNNING, controller.partition.tier_of(2))
        # No standby pool is configured, the other machine stays off.
        self.assertEqual(Tier.OFF, controller.partition.tier_of(3))
        self.assertEqual(0, controller.get_metrics()["standby_machines"])

    def test_standby_machine_is_preferred(self):
        engine = DummyClusterEngine.build([CpuType.X86, CpuType.ARM, CpuType.ARM, CpuType.ARM])
        controller = start_controller(engine, config={"tiers": {"max_running": 1, "min_running": 1, "standby_size": 1}})
        engine.add_task(1, CpuType.ARM)

        placement = controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.EXPANDED, placement.outcome)
        self.assertEqual(1, engine.vms[placement.vm_id].machine_id)
        self.assertEqual(Tier.RUNNING, controller.partition.tier_of(1))
        self.assertEqual(Tier.STANDBY, controller.partition.tier_of(2))
        self.assertEqual(Tier.OFF, controller.partition.tier_of(3))

    def test_refused_promotion_keeps_tier(self):
        engine = DummyClusterEngine.build([CpuType.X86, CpuType.ARM])
        controller = start_controller(engine, config=NO_SPARE)
        engine.locked_machines.add(1)
        engine.add_task(1, CpuType.ARM)

        placement = controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.FAILED, placement.outcome)
        self.assertEqual(Tier.OFF, controller.partition.tier_of(1))
        self.assertEqual(1, controller.get_metrics()["failed_placements"])


class TestPlacementVmReuse(unittest.TestCase):
    def setUp(self):
        self.engine = DummyClusterEngine.build([CpuType.X86] * 3)
        self.controller = start_controller(
            self.engine, config={"tiers": {"max_running": 3, "min_running": 1, "standby_size": 0}}
        )
        self.engine.full_vms.add(0)

    def _confirm_state_changes(self, now: int):
        for machine_id in range(3):
            self.controller.state_change_complete(now, machine_id)

    def test_vm_count_bounded_over_demote_promote_cycles(self):
        for cycle in range(3):
            now = cycle * 10
            task_id = cycle + 1
            self.controller.periodic_check(now + 1)
            self._confirm_state_changes(now + 2)
            self.engine.add_task(task_id, CpuType.X86)

            placement = self.controller.new_task(now + 3, task_id)

            self.assertEqual(PlacementOutcome.EXPANDED, placement.outcome)
            self.assertIn(placement.vm_id, (1, 2))
            self._confirm_state_changes(now + 4)
            self.engine.finish_task(task_id)
            self.controller.task_complete(now + 5, task_id)

        self.assertEqual(3, len(self.controller.registry))
        self.assertEqual(3, len(self.engine.commands_of("vm_create")))
        self.assertEqual(3, self.controller.get_metrics()["vms_created"])


class TestPlacementLastResort(unittest.TestCase):
    def test_emergency_ignores_memory(self):
        engine = DummyClusterEngine.build([CpuType.X86], memory_size=16)
        controller = start_controller(engine, config=NO_SPARE)
        engine.add_task(1, CpuType.X86, memory=32, sla=SlaClass.SLA3)

        placement = controller.new_task(1, 1)

        self.assertEqual(PlacementOutcome.EMERGENCY, placement.outcome)
        self.assertEqual(0, placement.vm_id)
        self.assertEqual(Priority.HIGH, engine.priorities[1])
        self.assertEqual(1, controller.get_metrics()["emergency_placements"])

    def test_emergency_skips_vm_on_demoted_machine(self):
        engine = DummyClusterEngine.build([CpuType.X86] * 2)
        controller = start_controller(engine, config={"tiers": {"max_running": 2, "min_running": 1, "standby_size": 0}})
        controller.periodic_check(1)
        controller.state_change_complete(2, 1)
        self.assertEqual(Tier.OFF, controller.partition.tier_of(1))
        engine.full_vms.add(0)
        engine.locked_machines.add(1)
        engine.add_task(1, CpuType.X86)

        placement = controller.new_task(3, 1)

        self.assertEqual(PlacementOutcome.FAILED, placement.outcome)
        self.assertListEqual([], engine.vms[1].tasks)
        self.assertEqual(1, engine.vms[1].machine_id)

    def test_no_machine_of_the_architecture(self):
        engine = DummyClusterEngine.build([CpuType.X86])
        controller = start_controller(engine, config=NO_SPARE)
        engine.add_task(1, CpuType.RISCV)
        engine.clear_commands()

        placement = controller.new_task(1, 1)

        self.assertFalse(placement.placed)
        self.assertListEqual([], engine.commands)


class TestPlacementProperties(unittest.TestCase):
    def test_hosting_vm_matches_task_architecture(self):
        cpus = [CpuType.X86, CpuType.ARM, CpuType.POWER, CpuType.RISCV] * 4
        engine = DummyClusterEngine.build(cpus)
        controller = start_controller(engine)

        for task_id in range(40):
            cpu = cpus[task_id % len(cpus)]
            engine.add_task(task_id, cpu, sla=SlaClass(task_id % 4))
            placement = controller.new_task(task_id, task_id)

            self.assertTrue(placement.placed)
            vm = engine.vms[placement.vm_id]
            self.assertEqual(cpu, vm.cpu)
            self.assertEqual(cpu, engine.machines[vm.machine_id].cpu)

    def test_strict_sla_gets_higher_priority(self):
        engine = DummyClusterEngine.build([CpuType.X86])
        controller = start_controller(engine, config=NO_SPARE)
        engine.add_task(1, CpuType.X86, sla=SlaClass.SLA0)
        engine.add_task(2, CpuType.X86, sla=SlaClass.SLA2)

        first = controller.new_task(1, 1)
        second = controller.new_task(2, 2)

        self.assertTrue(first.placed)
        self.assertTrue(second.placed)
        self.assertEqual(Priority.HIGH, first.priority)
        self.assertGreater(engine.priorities[1], engine.priorities[2])


if __name__ == "__main__":
    unittest.main()
