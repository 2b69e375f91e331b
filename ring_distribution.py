# ring_distribution.py
#
# How evenly does a one-point-per-node ring spread segment keys? With few
# nodes the arcs between points are very uneven; this prints and plots it.

import argparse
import numpy as np
import matplotlib.pyplot as plt
from config import STORAGE_NODES
from hashing_ring import HashRing, make_key

RING_SIZE = 2 ** 64


def sample_keys(count, videos=10):
    per_video = max(1, count // videos)
    return [make_key(f"video-{i // per_video}", f"chunk-{i % per_video:05d}.m4s") for i in range(count)]


def key_distribution(ring, keys):
    distribution = {node: 0 for node in ring.nodes}
    for key in keys:
        distribution[ring.get_node(key)] += 1
    return distribution


def hash_space_share(ring):
    """Fraction of the 64-bit hash space each node owns."""
    points = ring.points
    if not points:
        return {}
    if len(points) == 1:
        return {ring.node_for_point(points[0]).address: 1.0}
    # a node owns the arc from the previous point (exclusive) up to its own
    arcs = np.diff(np.array(points, dtype=object))
    wrap = RING_SIZE - points[-1] + points[0]
    shares = np.array([wrap] + list(arcs), dtype=float) / RING_SIZE
    return {ring.node_for_point(p).address: float(s) for p, s in zip(points, shares)}


def distribution_stats(distribution):
    counts = np.array(list(distribution.values()), dtype=float)
    if counts.size == 0 or counts.sum() == 0:
        return {"mean": 0.0, "std": 0.0, "cv": 0.0, "max_over_mean": 0.0}
    mean = counts.mean()
    return {
        "mean": float(mean),
        "std": float(counts.std()),
        "cv": float(counts.std() / mean),
        "max_over_mean": float(counts.max() / mean),
    }


def plot_distribution(distribution, output=None):
    fig, ax = plt.subplots()
    ax.bar(list(distribution.keys()), list(distribution.values()))
    ax.set_title("Segment Distribution Across Storage Nodes")
    ax.set_ylabel("Number of Segments")
    ax.tick_params(axis="x", rotation=30)
    fig.tight_layout()
    if output:
        fig.savefig(output)
        plt.close(fig)
    else:
        plt.show()
    return fig


def main(argv=None):
    parser = argparse.ArgumentParser(description="Key distribution over the storage ring")
    parser.add_argument("--nodes", default=",".join(STORAGE_NODES))
    parser.add_argument("--keys", type=int, default=1000)
    parser.add_argument("--plot", nargs="?", const="", default=None,
                        help="Show a bar chart, or save it to the given file")
    args = parser.parse_args(argv)

    ring = HashRing([n.strip() for n in args.nodes.split(",") if n.strip()])
    keys = sample_keys(args.keys)
    distribution = key_distribution(ring, keys)
    shares = hash_space_share(ring)

    print("\n Distribution Analysis:")
    for point in ring.points:
        node = ring.node_for_point(point).address
        count = distribution[node]
        print(f"{node}: point {point:016x}, {count} keys ({100 * count / len(keys):.1f}%), "
              f"owns {100 * shares[node]:.1f}% of hash space")
    stats = distribution_stats(distribution)
    print(f"mean {stats['mean']:.1f}, std {stats['std']:.1f}, "
          f"cv {stats['cv']:.2f}, max/mean {stats['max_over_mean']:.2f}")

    if args.plot is not None:
        plot_distribution(distribution, args.plot or None)


if __name__ == "__main__":
    main()
