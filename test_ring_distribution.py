import pytest
from hashing_ring import HashRing
from ring_distribution import (
    distribution_stats,
    hash_space_share,
    key_distribution,
    main,
    plot_distribution,
    sample_keys,
)

NODES = ["n1:9001", "n2:9002", "n3:9003", "n4:9004"]


def test_key_distribution_counts_every_key():
    ring = HashRing(NODES)
    keys = sample_keys(500)
    distribution = key_distribution(ring, keys)
    assert set(distribution) == set(NODES)
    assert sum(distribution.values()) == 500


def test_hash_space_shares_cover_the_ring():
    shares = hash_space_share(HashRing(NODES))
    assert set(shares) == set(NODES)
    assert sum(shares.values()) == pytest.approx(1.0)
    assert all(0 < s < 1 for s in shares.values())
    assert hash_space_share(HashRing(["solo:1"])) == {"solo:1": 1.0}
    assert hash_space_share(HashRing()) == {}


def test_key_share_tracks_hash_space_share():
    ring = HashRing(NODES)
    keys = sample_keys(20000)
    distribution = key_distribution(ring, keys)
    shares = hash_space_share(ring)
    for node in NODES:
        assert distribution[node] / len(keys) == pytest.approx(shares[node], abs=0.03)


def test_distribution_stats():
    stats = distribution_stats({"a": 10, "b": 30})
    assert stats["mean"] == 20
    assert stats["std"] == 10
    assert stats["cv"] == 0.5
    assert stats["max_over_mean"] == 1.5
    assert distribution_stats({})["cv"] == 0.0


def test_plot_is_written_to_file(tmp_path):
    output = tmp_path / "distribution.png"
    plot_distribution({"a": 3, "b": 5}, str(output))
    assert output.stat().st_size > 0


def test_main_prints_report(capsys):
    main(["--nodes", ",".join(NODES), "--keys", "200"])
    out = capsys.readouterr().out
    for node in NODES:
        assert node in out
