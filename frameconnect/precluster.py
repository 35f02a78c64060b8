'''
precluster.py -- coarse spatiotemporal clustering of localizations
ahead of the linear assignment step.

'''
import numpy as np
from scipy.spatial import cKDTree
import sys

from .locs import with_track_ids

def precluster(
	locs,
	max_sigma_dist = 5.0,
	max_frame_gap = 5,
	max_neighbors = 2,
	verbose = False
):
	'''
	Group localizations that are close in space and time into
	preclusters.

	Each dataset is handled separately. Frames are visited in
	increasing order; every localization in the current frame is
	compared with its *max_neighbors* + 1 nearest localizations from
	the last *max_frame_gap* frames (current frame included), and
	joins the cluster of each neighbor closer than
	max_sigma_dist * (mean_sigma[self] + mean_sigma[neighbor]). Whole
	clusters are relabeled to the smallest label involved, so the
	final partition is the connected components of the accepted
	neighbor graph. Localizations from the same frame may end up in
	the same precluster.

	INPUT
		locs			:	pandas.DataFrame, localization table
		max_sigma_dist	:	float, multiple of the localization error
							defining the distance threshold
		max_frame_gap	:	int, maximum frame gap between temporally
							adjacent members of a precluster
		max_neighbors	:	int, maximum number of nearest neighbors
							inspected per localization
		verbose			:	bool

	RETURNS
		pandas.DataFrame, copy of *locs* with track_id set to the
			precluster label (dense, 1..n_preclusters)

	'''
	n_locs = len(locs)
	if n_locs == 0:
		return with_track_ids(locs, np.zeros(0, dtype = 'int64'))

	frames = locs['frame'].values
	datasets = locs['dataset'].values
	xy = locs[['x', 'y']].values.astype('float64')
	mean_se = (locs['sigma_x'].values + locs['sigma_y'].values) / 2.0

	# Every localization starts as its own cluster; members[label]
	# holds the row indices currently carrying *label*.
	labels = np.arange(1, n_locs + 1, dtype = 'int64')
	members = {label : [idx] for idx, label in enumerate(labels)}

	unique_datasets = np.unique(datasets)
	for ds_count, dataset in enumerate(unique_datasets):
		ds_indices = np.nonzero(datasets == dataset)[0]
		ds_indices = ds_indices[np.argsort(frames[ds_indices], kind = 'stable')]
		ds_frames = frames[ds_indices]

		for frame in np.unique(ds_frames):
			window_start = np.searchsorted(ds_frames, frame - max_frame_gap, side = 'left')
			frame_start = np.searchsorted(ds_frames, frame, side = 'left')
			frame_stop = np.searchsorted(ds_frames, frame, side = 'right')
			candidates = ds_indices[window_start:frame_stop]
			if candidates.shape[0] < 2:
				continue
			current = ds_indices[frame_start:frame_stop]

			k = min(max_neighbors + 1, candidates.shape[0])
			tree = cKDTree(xy[candidates])
			nn_dist, nn_indices = tree.query(xy[current], k = k)
			nn_dist = nn_dist.reshape((current.shape[0], k))
			nn_indices = nn_indices.reshape((current.shape[0], k))

			for i, loc_idx in enumerate(current):
				neighbors = candidates[nn_indices[i]]
				threshold = max_sigma_dist * (mean_se[loc_idx] + mean_se[neighbors])
				accepted = neighbors[nn_dist[i] <= threshold]
				linked = set(labels[accepted].tolist())
				linked.add(int(labels[loc_idx]))
				if len(linked) > 1:
					_merge_labels(labels, members, linked)

		if verbose:
			sys.stdout.write('Preclustered %d/%d datasets...\r' % (ds_count + 1, unique_datasets.shape[0]))
			sys.stdout.flush()

	if verbose:
		sys.stdout.write('\n')
	return with_track_ids(locs, compress_track_ids(labels))

def _merge_labels(labels, members, linked):
	new_label = min(linked)
	for label in linked:
		if label == new_label:
			continue
		indices = members.pop(label)
		labels[indices] = new_label
		members[new_label].extend(indices)

def compress_track_ids(track_ids):
	'''
	Renumber track ids so that they are exactly 1..K, K being the
	number of distinct values, preserving the order of the original
	values.

	INPUT
		track_ids	:	1D array-like of int

	RETURNS
		numpy.array of int64

	'''
	track_ids = np.asarray(track_ids)
	if track_ids.shape[0] == 0:
		return np.zeros(0, dtype = 'int64')
	_, inverse = np.unique(track_ids, return_inverse = True)
	return inverse.reshape(track_ids.shape).astype('int64') + 1
