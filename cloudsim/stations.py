# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# stations.py
# -----------------------------------------------------------------------------
# Purpose:
#   Define the concrete service points of the cloud pipeline (data storage,
#   classification, CPU compute, GPU compute, result storage) from config.
#
# Design notes:
#   - The CPU/GPU waiting lines are the compute points' own priority-ordered
#     admission queues; their capacity is the node count.
#   - Storage and classification stages are FIFO.
#
# Usage:
#   from cloudsim.stations import make_service_points
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Dict

from .config import SimulationConfig
from .queues import FIFO, PRIORITY, ServicePoint
from .random_streams import RandomStreams

DATA_STORAGE = "data_storage"
CLASSIFICATION = "classification"
CPU_COMPUTE = "cpu_compute"
GPU_COMPUTE = "gpu_compute"
RESULT_STORAGE = "result_storage"

STAGE_ORDER = (DATA_STORAGE, CLASSIFICATION, CPU_COMPUTE, GPU_COMPUTE, RESULT_STORAGE)


def make_service_points(cfg: SimulationConfig, streams: RandomStreams) -> Dict[str, ServicePoint]:
    """
    Create all stages of the pipeline.

    Parameters
    ----------
    cfg : SimulationConfig
        Validated configuration (capacities and mean service times).
    streams : RandomStreams
        Source of one service-time stream per stage.

    Returns
    -------
    dict[str, ServicePoint]
        Mapping stage name -> ServicePoint, in pipeline order.
    """
    S = {}
    # Ingest
    S[DATA_STORAGE] = ServicePoint(DATA_STORAGE, c=cfg.data_storage_servers,
                                   mean_service_time=cfg.data_storage_service_time,
                                   discipline=FIFO, rng=streams.get(DATA_STORAGE))
    S[CLASSIFICATION] = ServicePoint(CLASSIFICATION, c=cfg.classification_servers,
                                     mean_service_time=cfg.classification_service_time,
                                     discipline=FIFO, rng=streams.get(CLASSIFICATION))
    # Compute: higher-tier tasks jump the waiting line
    S[CPU_COMPUTE] = ServicePoint(CPU_COMPUTE, c=cfg.num_cpu_nodes,
                                  mean_service_time=cfg.cpu_compute_service_time,
                                  discipline=PRIORITY, rng=streams.get(CPU_COMPUTE))
    S[GPU_COMPUTE] = ServicePoint(GPU_COMPUTE, c=cfg.num_gpu_nodes,
                                  mean_service_time=cfg.gpu_compute_service_time,
                                  discipline=PRIORITY, rng=streams.get(GPU_COMPUTE))
    # Egress
    S[RESULT_STORAGE] = ServicePoint(RESULT_STORAGE, c=cfg.result_storage_servers,
                                     mean_service_time=cfg.result_storage_service_time,
                                     discipline=FIFO, rng=streams.get(RESULT_STORAGE))
    return S
