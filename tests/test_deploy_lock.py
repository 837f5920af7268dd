"""Tests for the per-branch deploy lock."""

from __future__ import annotations

import threading

from github_deploy.services.deploy_lock import DeployLock

KEY = "acme/widget:main"


class TestDeployLock:
    def test_acquire_and_release(self):
        lock = DeployLock()
        assert lock.try_acquire(KEY) is True
        assert KEY in lock
        lock.release(KEY)
        assert KEY not in lock
        assert lock.try_acquire(KEY) is True

    def test_second_acquire_fails(self):
        lock = DeployLock()
        assert lock.try_acquire(KEY) is True
        assert lock.try_acquire(KEY) is False
        assert len(lock) == 1

    def test_double_release_is_harmless(self):
        lock = DeployLock()
        lock.try_acquire(KEY)
        lock.release(KEY)
        lock.release(KEY)
        assert KEY not in lock
        assert len(lock) == 0

    def test_release_unknown_key(self):
        lock = DeployLock()
        lock.release("never/acquired:main")
        assert lock.running() == []

    def test_keys_are_independent(self):
        lock = DeployLock()
        assert lock.try_acquire("acme/widget:main") is True
        assert lock.try_acquire("acme/widget:master") is True
        assert lock.try_acquire("acme/gadget:main") is True
        assert lock.running() == ["acme/gadget:main", "acme/widget:main", "acme/widget:master"]

    def test_concurrent_acquire_single_winner(self):
        lock = DeployLock()
        barrier = threading.Barrier(8)
        results: list[bool] = []

        def worker():
            barrier.wait()
            results.append(lock.try_acquire(KEY))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7
