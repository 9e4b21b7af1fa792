"""
Tests for the command line entry point.

Run with: python -m pytest tests/test_cli.py -v
"""

import json

import pytest

from shardrouter import cli
from shardrouter.cluster.hashing import partition_for_key


@pytest.fixture
def topology_file(tmp_path):
    data = {
        "partitions": [
            {
                "partition_id": pid,
                "primary": {"host": "localhost", "port": 5440 + pid, "user": "postgres",
                            "password": "postgres", "database": f"shard{pid}"},
                "replicas": [],
            }
            for pid in range(2)
        ]
    }
    path = tmp_path / "topology.json"
    path.write_text(json.dumps(data))
    return path


class TestCommands:
    """Test each sub-command."""

    def test_partition(self, capsys):
        """Test that partition prints the partition of each key."""
        assert cli.main(["partition", "user_100", "user_alice"]) == 0
        out = capsys.readouterr().out
        assert f"user_100 -> Partition {partition_for_key('user_100', 3)}" in out
        assert f"user_alice -> Partition {partition_for_key('user_alice', 3)}" in out

    def test_partition_uses_topology_size(self, capsys, topology_file):
        """Test that partition hashes over the loaded topology size."""
        assert cli.main(["--topology", str(topology_file), "partition", "user_100"]) == 0
        assert f"Partition {partition_for_key('user_100', 2)}" in capsys.readouterr().out

    def test_distribution(self, capsys):
        """Test that distribution accounts for every generated key."""
        assert cli.main(["distribution", "--keys", "1000", "--partitions", "4"]) == 0
        lines = [line for line in capsys.readouterr().out.splitlines() if "Partition" in line]
        assert len(lines) == 4
        total = sum(int(line.split(":")[1].split()[0]) for line in lines)
        assert total == 1000

    def test_demo_on_sqlite(self, capsys, tmp_path):
        """Test the full demo against SQLite partitions."""
        assert cli.main(["--sqlite-dir", str(tmp_path / "data"), "--selection", "first", "demo"]) == 0
        out = capsys.readouterr().out
        assert "Connected to 3 partitions" in out
        assert "Primary read: Alice Johnson" in out
        assert "Demo Complete" in out

    def test_counts_on_sqlite(self, capsys, tmp_path, topology_file):
        """Test counts on a topology with empty partitions."""
        data_dir = tmp_path / "data"
        assert cli.main(["--sqlite-dir", str(data_dir), "demo"]) == 0
        capsys.readouterr()
        assert cli.main(["--sqlite-dir", str(data_dir), "--topology", str(topology_file), "counts"]) == 0
        assert "Total: 0 users" in capsys.readouterr().out

    def test_bad_topology_returns_error(self, tmp_path):
        """Test that an invalid topology file exits with status 1."""
        path = tmp_path / "bad.json"
        path.write_text("{}")
        assert cli.main(["--topology", str(path), "partition", "k"]) == 1
