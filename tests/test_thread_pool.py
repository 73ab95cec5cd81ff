"""
Tests for the fork-join thread pool map.
"""

import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor

from mandelbrot_engine.acceleration.thread_pool import ParallelMapExecutor, get_optimal_worker_count


class TestParallelMapExecutor(unittest.TestCase):
    def setUp(self):
        self.executor = ParallelMapExecutor(max_workers=4)

    def tearDown(self):
        self.executor.shutdown()

    def test_results_in_input_order(self):
        def slow_square(x):
            time.sleep(0.001 * (10 - x % 10))
            return x * x

        self.assertEqual(self.executor.map_blocking(slow_square, list(range(30))),
                         [x * x for x in range(30)])

    def test_empty_input(self):
        self.assertEqual(self.executor.map_blocking(lambda x: x, []), [])

    def test_first_error_is_raised_and_stop_event_set(self):
        stop = threading.Event()
        finished = []

        def task(x):
            if x == 3:
                raise ValueError("bad item")
            # Remaining tasks cooperate with the stop event.
            for _ in range(200):
                if stop.is_set():
                    return False
                time.sleep(0.005)
            finished.append(x)
            return True

        with self.assertRaises(ValueError):
            self.executor.map_blocking(task, list(range(8)), stop_event=stop)
        self.assertTrue(stop.is_set())
        self.assertEqual(finished, [])

    def test_owned_pool_restarts_after_shutdown(self):
        self.assertEqual(self.executor.map_blocking(str, [1, 2]), ["1", "2"])
        self.executor.shutdown()
        self.assertEqual(self.executor.map_blocking(str, [3]), ["3"])

    def test_injected_executor_left_running(self):
        with ThreadPoolExecutor(max_workers=2) as pool:
            executor = ParallelMapExecutor(executor=pool)
            self.assertEqual(executor.map_blocking(abs, [-1, -2]), [1, 2])
            executor.shutdown()
            self.assertEqual(pool.submit(abs, -5).result(), 5)

    def test_worker_count(self):
        self.assertGreaterEqual(get_optimal_worker_count(), 1)
        self.assertEqual(self.executor.max_workers, 4)


if __name__ == '__main__':
    unittest.main()
