import dataclasses

import pytest

from cloudsim.config import SimulationConfig, apply_overrides, load_cfg
from cloudsim.entities import PriorityClass
from cloudsim.errors import ConfigError
from cloudsim.simulation import RunState, SimulationDriver


def test_baseline_file_loads_into_config():
    cfg = load_cfg()
    config = SimulationConfig.from_dict(cfg)
    config.validate()
    assert config.mean_arrival_interval == 2.0
    assert config.num_cpu_nodes == 2
    assert config.num_gpu_nodes == 1
    assert config.gpu_compute_service_time == 8.0
    assert config.priority_mix[PriorityClass.ENTERPRISE_PRIORITY] == pytest.approx(0.1)
    assert config.seed == 0
    assert cfg["experiments"]["replications"] >= 1


def test_empty_dict_gives_defaults():
    config = SimulationConfig.from_dict({})
    assert config == SimulationConfig()
    assert config.mean_arrival_interval == 1.0
    assert (config.num_cpu_nodes, config.num_gpu_nodes) == (4, 3)
    assert config.seed is None
    config.validate()


def test_apply_overrides_merges_without_mutating():
    base = {"arrivals": {"mean_interval": 2.0, "cpu_task_probability": 0.7}, "sim": {"seed": 1}}
    merged = apply_overrides(base, {"arrivals": {"mean_interval": 1.0}, "capacities": {"gpu_nodes": 2}})
    assert merged["arrivals"] == {"mean_interval": 1.0, "cpu_task_probability": 0.7}
    assert merged["capacities"] == {"gpu_nodes": 2}
    assert base["arrivals"]["mean_interval"] == 2.0
    assert "capacities" not in base


def test_partial_priority_mix_must_still_sum_to_one():
    config = SimulationConfig.from_dict({"arrivals": {"priority_mix": {"normal": 0.5, "personal_priority": 0.3}}})
    with pytest.raises(ConfigError):
        config.validate()


@pytest.mark.parametrize("changes", [
    {"mean_arrival_interval": 0.0},
    {"mean_arrival_interval": float("inf")},
    {"num_cpu_nodes": 1.5},
    {"num_gpu_nodes": 0.5},
    {"result_storage_servers": 2.5},
    {"simulation_time": -1.0},
    {"num_cpu_nodes": -1},
    {"data_storage_servers": 0},
    {"gpu_compute_service_time": -2.0},
    {"cpu_task_probability": 1.5},
    {"min_speed": 0.0},
    {"min_speed": 10.0, "max_speed": 1.0},
    {"pacing_interval": 0.0},
])
def test_invalid_parameters_raise_config_error(changes):
    config = SimulationConfig(**changes)
    with pytest.raises(ConfigError):
        config.validate()


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


def test_zero_nodes_and_pure_queue_are_valid():
    SimulationConfig(num_gpu_nodes=0, classification_service_time=0.0).validate()


def test_clamp_speed():
    config = SimulationConfig()
    assert config.clamp_speed(1000.0) == 100.0
    assert config.clamp_speed(0.0) == 0.1
    assert config.clamp_speed(3.0) == 3.0


def test_whole_float_capacities_are_accepted():
    SimulationConfig(num_cpu_nodes=2.0, data_storage_servers=1.0).validate()


def test_fractional_capacity_never_reaches_the_driver(small_config):
    driver = SimulationDriver(dataclasses.replace(small_config, num_cpu_nodes=1.5), realtime=False)
    with pytest.raises(ConfigError):
        driver.initialize()
    assert driver.state == RunState.NEW


def test_infinite_arrival_interval_rejected_at_initialize(small_config):
    driver = SimulationDriver(dataclasses.replace(small_config, mean_arrival_interval=float("inf")),
                              realtime=False)
    with pytest.raises(ConfigError):
        driver.initialize()


def test_fractional_capacity_in_yaml_dict_is_not_truncated():
    config = SimulationConfig.from_dict({"capacities": {"cpu_nodes": 1.5}})
    assert config.num_cpu_nodes == 1.5
    with pytest.raises(ConfigError):
        config.validate()
