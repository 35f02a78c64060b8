'''Tests for preclustering and track id compression.'''
import numpy as np
import pytest

from frameconnect import precluster, compress_track_ids
from helpers import make_loc, make_blinking_molecule, make_table, partition


def dense(track_ids):
	values = set(np.asarray(track_ids).tolist())
	return values == set(range(1, len(values) + 1))


class TestCompressTrackIds:

	def test_dense_range(self):
		result = compress_track_ids([10, 3, 10, 7])
		assert result.tolist() == [3, 1, 3, 2]

	def test_empty(self):
		assert compress_track_ids([]).shape == (0,)

	def test_permutation_invariant(self):
		rng = np.random.default_rng(3)
		track_ids = rng.integers(0, 1000, size = 200)
		order = rng.permutation(200)
		a = compress_track_ids(track_ids)
		b = compress_track_ids(track_ids[order])
		assert (a[order] == b).all()
		assert dense(a)


class TestPrecluster:

	def test_empty(self):
		result = precluster(make_table([]))
		assert len(result) == 0

	def test_single_localization(self):
		result = precluster(make_table([make_loc(5.0, 5.0, 1)]))
		assert result['track_id'].tolist() == [1]

	def test_separated_molecules(self):
		locs = make_blinking_molecule(5.0, 5.0, [1, 2, 3]) + \
			make_blinking_molecule(10.0, 10.0, [1, 2, 3])
		result = precluster(make_table(locs))
		track_ids = result['track_id'].values
		assert dense(track_ids)
		assert partition(track_ids) == {frozenset([0, 1, 2]), frozenset([3, 4, 5])}

	def test_input_not_modified(self):
		table = make_table(make_blinking_molecule(5.0, 5.0, [1, 2, 3]))
		precluster(table)
		assert (table['track_id'] == 0).all()

	def test_frame_gap(self):
		locs = make_blinking_molecule(5.0, 5.0, [1, 2, 3]) + \
			make_blinking_molecule(5.0, 5.0, [10, 11, 12])
		result = precluster(make_table(locs), max_frame_gap = 5)
		assert partition(result['track_id']) == {frozenset([0, 1, 2]), frozenset([3, 4, 5])}

		result = precluster(make_table(locs), max_frame_gap = 7)
		assert partition(result['track_id']) == {frozenset(range(6))}

	def test_datasets_not_connected(self):
		locs = make_blinking_molecule(5.0, 5.0, [1, 2, 3], dataset = 1) + \
			make_blinking_molecule(5.0, 5.0, [1, 2, 3], dataset = 2)
		result = precluster(make_table(locs))
		assert partition(result['track_id']) == {frozenset([0, 1, 2]), frozenset([3, 4, 5])}

	def test_distance_threshold(self):
		# threshold = 5 * (0.02 + 0.02) = 0.2 um
		locs = [make_loc(0.0, 0.0, 1), make_loc(0.19, 0.0, 2), make_loc(0.6, 0.0, 3)]
		result = precluster(make_table(locs))
		assert partition(result['track_id']) == {frozenset([0, 1]), frozenset([2])}

		result = precluster(make_table(locs), max_sigma_dist = 1.0)
		assert len(set(result['track_id'])) == 3

	def test_transitive_membership(self):
		# first and last are 0.3 um apart, but both link to the middle one
		locs = [make_loc(0.0, 0.0, 1), make_loc(0.15, 0.0, 2), make_loc(0.3, 0.0, 3)]
		result = precluster(make_table(locs))
		assert result['track_id'].tolist() == [1, 1, 1]

	def test_same_frame_members(self):
		locs = [make_loc(0.0, 0.0, 1), make_loc(0.1, 0.0, 1)]
		result = precluster(make_table(locs))
		assert result['track_id'].tolist() == [1, 1]

	def test_order_independent(self):
		rng = np.random.default_rng(7)
		n_locs = 300
		locs = [make_loc(x, y, f, sigma = 0.03) for x, y, f in zip(
			rng.uniform(0, 3, n_locs),
			rng.uniform(0, 3, n_locs),
			rng.integers(1, 40, n_locs)
		)]
		table = make_table(locs)
		reference = precluster(table)
		assert dense(reference['track_id'])
		reference_partition = partition(reference['track_id'])
		for seed in range(5):
			order = np.random.default_rng(seed).permutation(n_locs)
			shuffled = table.iloc[order].reset_index(drop = True)
			result = precluster(shuffled)
			# map back to the original row numbers through the id column
			track_ids = np.zeros(n_locs, dtype = 'int64')
			track_ids[result['id'].values] = result['track_id'].values
			assert partition(track_ids) == reference_partition
