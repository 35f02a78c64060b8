'''
link.py -- solve the linear assignment problem for each precluster
and propagate the resulting connections into track ids.

'''
import numpy as np
import sys
from munkres import Munkres, DISALLOWED
munkres_solver = Munkres()

from .costmatrix import create_cost_matrix
from .estimate import state_densities
from .precluster import compress_track_ids

def solve_lap(cost_matrix):
	'''
	Find the minimum cost perfect matching for a square cost matrix
	with the Hungarian algorithm. Non-finite entries are treated as
	forbidden assignments.

	INPUT
		cost_matrix	:	numpy.array (2D, square)

	RETURNS
		numpy.array of int, float :
			assignment[i], the column assigned to row i;
			the total cost of the matching

	'''
	cost_matrix = np.asarray(cost_matrix, dtype = 'float64')
	if cost_matrix.size == 0:
		return np.zeros(0, dtype = 'int64'), 0.0
	n_rows = cost_matrix.shape[0]
	finite = np.isfinite(cost_matrix)
	matrix = [[float(cost_matrix[i, j]) if finite[i, j] else DISALLOWED \
		for j in range(cost_matrix.shape[1])] for i in range(n_rows)]
	indexes = munkres_solver.compute(matrix)
	assignment = np.zeros(n_rows, dtype = 'int64')
	for row, column in indexes:
		assignment[row] = column
	total_cost = cost_matrix[np.arange(n_rows), assignment].sum()
	return assignment, float(total_cost)

def link_clusters(
	track_ids,
	max_track_id,
	indices,
	assignment
):
	'''
	Give the localizations at *indices* new track ids according to
	the LAP solution *assignment* of their cluster.

	Every localization first receives a fresh id above
	*max_track_id*. Then, walking through the first N rows of the
	assignment in order, each connection i -> assignment[i] sets both
	localizations to the smallest of their current and initial ids,
	so chains of connections collapse onto one id.

	INPUT
		track_ids		:	1D array of int, track ids of all
							localizations
		max_track_id	:	int, largest id in use
		indices			:	1D array of int, rows of the cluster
							members in *track_ids*, in cost matrix order
		assignment		:	1D array of int, length 2N, from solve_lap()

	RETURNS
		numpy.array, int :
			a new array of track ids;
			the new largest id in use

	'''
	track_ids = np.array(track_ids, dtype = 'int64')
	N = len(assignment) // 2
	initial = np.arange(1, N + 1, dtype = 'int64')
	current = initial.copy()
	for i in range(N):
		j = assignment[i]
		if j >= N:		# death; nothing to connect
			continue
		new_id = min(current[i], current[j], initial[i], initial[j])
		current[i] = new_id
		current[j] = new_id
	track_ids[np.asarray(indices, dtype = 'int64')] = current + max_track_id
	return track_ids, max_track_id + N

def connect_localizations(
	track_ids,
	clusters,
	density,
	k_on,
	k_off,
	k_bleach,
	p_miss,
	max_frame_gap,
	n_frames,
	verbose = False
):
	'''
	Connect localizations within each precluster by solving its linear
	assignment problem.

	INPUT
		track_ids		:	1D array of int, precluster labels of all
							localizations
		clusters		:	list of pandas.DataFrame, from
							organize_clusters(); clusters[i] is the
							precluster whose density is density[i]
		density			:	1D array, emitters/um^2 per precluster
		k_on, k_off, k_bleach	:	float, rates in 1/frame
		p_miss			:	float
		max_frame_gap	:	int
		n_frames		:	int
		verbose			:	bool

	RETURNS
		numpy.array of int64, track ids compressed to 1..n_tracks

	'''
	track_ids = np.array(track_ids, dtype = 'int64')
	if track_ids.shape[0] == 0:
		return track_ids
	max_track_id = int(track_ids.max())
	rho_on, rho_dark = state_densities(k_on, k_off, k_bleach, n_frames)

	to_check = [c for c in range(len(clusters)) if len(clusters[c]) > 1]
	for count, cluster_idx in enumerate(to_check):
		cluster = clusters[cluster_idx]
		cost_matrix, _ = create_cost_matrix(
			cluster,
			k_on,
			k_off,
			k_bleach,
			p_miss,
			density[cluster_idx],
			max_frame_gap,
			n_frames,
			rho_on = rho_on,
			rho_dark = rho_dark
		)
		assignment, _ = solve_lap(cost_matrix)
		track_ids, max_track_id = link_clusters(
			track_ids,
			max_track_id,
			cluster['index'].values,
			assignment
		)
		if verbose:
			sys.stdout.write('Solved %d/%d preclusters...\r' % (count + 1, len(to_check)))
			sys.stdout.flush()

	if verbose and to_check:
		sys.stdout.write('\n')
	return compress_track_ids(track_ids)
