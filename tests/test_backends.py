import pickle

import numpy as np
import pytest

from brownianmc.backends import (
    ProcessBackend,
    SequentialBackend,
    ThreadBackend,
    make_blocks,
    run_block,
    worker_run_chunk,
)
from brownianmc.config import ConfigurationError, SimulationConfig
from brownianmc.sims import FirstPassageSimulation
from brownianmc.tasks import CancellationToken, SimulationCancelled


class TestMakeBlocks:
    """Test block creation for parallel processing"""

    def test_make_blocks_exact_division(self):
        """Test blocks with exact division"""
        blocks = make_blocks(10000, block_size=1000)
        assert len(blocks) == 10
        assert blocks[0] == (0, 1000)
        assert blocks[-1] == (9000, 10000)

    def test_make_blocks_with_remainder(self):
        """Test blocks with remainder"""
        blocks = make_blocks(10500, block_size=1000)
        assert len(blocks) == 11
        assert blocks[-1] == (10000, 10500)

    def test_make_blocks_small_n(self):
        """Test blocks smaller than block_size"""
        assert make_blocks(500, block_size=1000) == [(0, 500)]

    def test_make_blocks_empty(self):
        """Test n = 0 gives no blocks"""
        assert make_blocks(0) == []

    def test_make_blocks_coverage(self):
        """Test all elements are covered exactly once"""
        blocks = make_blocks(12345, block_size=1000)
        assert sum(j - i for i, j in blocks) == 12345
        assert all(a[1] == b[0] for a, b in zip(blocks, blocks[1:]))


class TestRunBlock:
    """Test the per-block path loop"""

    def test_output_shape(self, counting_simulation):
        """Test one row per path with n_outputs columns"""
        out, recorded = run_block(counting_simulation, np.random.default_rng(0), 10, 15, 0, {})
        assert out.shape == (5, 2)
        np.testing.assert_array_equal(out[:, 0], [1, 2, 3, 4, 5])
        np.testing.assert_array_equal(out[:, 1], [2, 4, 6, 8, 10])
        assert recorded == {}

    def test_recording_uses_global_index(self, endpoint_simulation):
        """Test only global indices below n_recorded are kept"""
        _, recorded = run_block(endpoint_simulation, np.random.default_rng(0), 3, 8, 5, {"n_steps": 4})
        assert sorted(recorded) == [3, 4]
        assert len(recorded[3]) == 5

    def test_on_path_callback(self, counting_simulation):
        """Test the callback sees every global index"""
        seen = []
        run_block(counting_simulation, np.random.default_rng(0), 2, 5, 0, {}, on_path=seen.append)
        assert seen == [2, 3, 4]

    def test_cancel_token_checked(self, counting_simulation):
        """Test a cancelled token stops the block"""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled):
            run_block(counting_simulation, np.random.default_rng(0), 0, 5, 0, {}, cancel_token=token)
        assert counting_simulation.counter == 0

    def test_worker_run_chunk_reproducible(self, endpoint_simulation):
        """Test a worker chunk is a pure function of its seed"""
        ss = np.random.SeedSequence(99)
        a, _ = worker_run_chunk(endpoint_simulation, 0, 20, ss, 0, {"n_steps": 5})
        b, _ = worker_run_chunk(endpoint_simulation, 0, 20, np.random.SeedSequence(99), 0, {"n_steps": 5})
        np.testing.assert_array_equal(a, b)


class TestSequentialBackend:
    """Test single-threaded execution"""

    def test_outputs_in_order(self, counting_simulation):
        """Test rows come out in path order"""
        out, _ = SequentialBackend().run(counting_simulation, 7, None, None)
        np.testing.assert_array_equal(out[:, 0], np.arange(1, 8))

    def test_progress_reaches_total(self, counting_simulation):
        """Test the callback is called with (total, total) last"""
        calls = []
        SequentialBackend().run(counting_simulation, 250, None, lambda c, t: calls.append((c, t)))
        assert calls[-1] == (250, 250)
        assert all(t == 250 for _, t in calls)
        assert [c for c, _ in calls] == sorted(c for c, _ in calls)

    def test_cancel_mid_run(self, counting_simulation):
        """Test cancelling from the progress callback stops at the next path"""
        token = CancellationToken()
        with pytest.raises(SimulationCancelled):
            SequentialBackend().run(
                counting_simulation, 200, None, lambda c, t: token.cancel(), cancel_token=token
            )
        assert counting_simulation.counter < 200


class TestThreadBackend:
    """Test thread-based execution"""

    def test_shape_and_recorded(self, endpoint_simulation):
        """Test outputs and recorded paths"""
        out, recorded = ThreadBackend(n_workers=4).run(
            endpoint_simulation, 500, endpoint_simulation.seed_seq, None, n_recorded=7, n_steps=3
        )
        assert out.shape == (500, 1)
        assert np.all(np.isfinite(out))
        assert sorted(recorded) == list(range(7))

    def test_seeded_runs_match(self, endpoint_simulation):
        """Test identical seeds and worker counts give identical outputs"""
        endpoint_simulation.set_seed(5)
        a, _ = ThreadBackend(n_workers=3).run(endpoint_simulation, 300, endpoint_simulation.seed_seq, None)
        endpoint_simulation.set_seed(5)
        b, _ = ThreadBackend(n_workers=3).run(endpoint_simulation, 300, endpoint_simulation.seed_seq, None)
        np.testing.assert_array_equal(a, b)

    def test_progress(self, endpoint_simulation):
        """Test block-level progress reaches the total"""
        calls = []
        ThreadBackend(n_workers=2).run(
            endpoint_simulation, 100, endpoint_simulation.seed_seq, lambda c, t: calls.append(c)
        )
        assert max(calls) == 100

    def test_pre_cancelled(self, endpoint_simulation):
        """Test a cancelled token aborts the run"""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled):
            ThreadBackend(n_workers=2).run(
                endpoint_simulation, 100, endpoint_simulation.seed_seq, None, cancel_token=token
            )


class TestProcessBackend:
    """Test process-based execution"""

    def test_first_passage_in_processes(self):
        """Test a small first-passage run across two processes"""
        sim = FirstPassageSimulation()
        sim.set_seed(3)
        out, recorded = ProcessBackend(n_workers=2).run(
            sim,
            40,
            sim.seed_seq,
            None,
            n_recorded=2,
            drift=0.0,
            volatility=1.0,
            barrier=1.0,
            step_size=0.01,
            step_count=100,
        )
        assert out.shape == (40, 1)
        assert set(np.unique(out)) <= {0.0, 1.0}
        assert sorted(recorded) == [0, 1]


class TestExecuteDispatch:
    """Test backend selection in PathSimulation._execute"""

    def test_auto_small_runs_sequential(self, endpoint_simulation):
        """Test small runs stay on the calling thread"""
        out, _, meta = endpoint_simulation.run(50, backend="auto")
        assert meta["backend"] == "sequential"
        assert out.shape == (50, 1)

    def test_auto_large_runs_parallel(self, endpoint_simulation):
        """Test auto with many paths and workers goes parallel"""
        _, _, meta = endpoint_simulation.run(2500, backend="auto", n_workers=2, n_steps=2)
        assert meta["backend"] in ("thread", "process")

    def test_explicit_thread(self, endpoint_simulation):
        """Test an explicit backend is honoured"""
        _, _, meta = endpoint_simulation.run(20, backend="thread", n_workers=2)
        assert meta["backend"] == "thread"

    def test_sequential_seeded_determinism(self, endpoint_simulation):
        """Test reseeding reproduces a sequential run"""
        endpoint_simulation.set_seed(1)
        a, _, _ = endpoint_simulation.run(30, backend="sequential")
        endpoint_simulation.set_seed(1)
        b, _, _ = endpoint_simulation.run(30, backend="sequential")
        np.testing.assert_array_equal(a, b)

    def test_zero_paths(self, counting_simulation):
        """Test an empty run returns an empty output matrix"""
        out = counting_simulation.run(0)
        assert out.shape == (0, 2)

    def test_metadata(self, endpoint_simulation):
        """Test run metadata"""
        _, _, meta = endpoint_simulation.run(5, backend="sequential")
        assert meta["simulation_name"] == "Endpoint"
        assert meta["seed_entropy"] == 123
        assert "timestamp" in meta

    @pytest.mark.parametrize("kwargs", [{"backend": "gpu"}, {"backend": "thread", "n_workers": 0}])
    def test_invalid_backend_options(self, endpoint_simulation, kwargs):
        """Test unknown backends and non-positive worker counts"""
        with pytest.raises(ConfigurationError):
            endpoint_simulation.run(10, **kwargs)

    def test_pre_cancelled_token(self, endpoint_simulation):
        """Test nothing runs when the token is already cancelled"""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled):
            endpoint_simulation.run(10, cancel_token=token)

    def test_simulation_pickles_without_rng(self):
        """Test the generator is dropped on pickling and rebuilt from the seed"""
        sim = FirstPassageSimulation()
        sim.set_seed(1)
        assert sim.__getstate__()["rng"] is None
        clone = pickle.loads(pickle.dumps(sim))
        assert isinstance(clone.rng, np.random.Generator)
        assert clone.seed_seq.entropy == 1
        np.testing.assert_array_equal(clone.rng.random(3), np.random.default_rng(np.random.SeedSequence(1)).random(3))

    def test_first_passage_config_runs_threaded(self):
        """Test a full first-passage run with threads"""
        sim = FirstPassageSimulation()
        sim.set_seed(8)
        cfg = SimulationConfig(drift=0.0, barrier=1.0, horizon=1.0, step_size=0.01, path_count=300)
        res = sim.run(cfg, backend="thread", n_workers=3)
        assert res.metadata["backend"] == "thread"
        assert 0.0 <= res.empirical_probability <= 1.0
        assert len(res.sample_paths) == 10
