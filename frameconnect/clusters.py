'''
clusters.py -- reshape a track-labeled localization table into one
small table per cluster.

'''
import numpy as np

# Columns of a cluster table; 'index' is the row of the localization
# in the table the clusters were built from.
CLUSTER_COLUMNS = [
	'x',
	'y',
	'sigma_x',
	'sigma_y',
	'sigma_xy',
	'frame',
	'dataset',
	'track_id',
	'index',
]

def organize_clusters(locs):
	'''
	Split *locs* into clusters of localizations sharing a track_id.

	INPUT
		locs	:	pandas.DataFrame, localization table with track_id
					populated

	RETURNS
		list of pandas.DataFrame, one per distinct track_id in
			increasing track_id order, each with the columns in
			CLUSTER_COLUMNS and sorted by frame (ties keep their
			original order)

	'''
	if len(locs) == 0:
		return []
	table = locs.assign(index = np.arange(len(locs)))[CLUSTER_COLUMNS]
	table = table.sort_values(['track_id', 'frame', 'index'])
	return [cluster.reset_index(drop = True) for _, cluster in \
		table.groupby('track_id', sort = True)]

def compute_cluster_info(clusters):
	'''
	Compute the duration of and the number of observations in each
	cluster.

	The number of observations counts distinct frames, so that
	several members in the same frame (allowed by preclustering)
	count once.

	INPUT
		clusters	:	list of pandas.DataFrame, from organize_clusters()

	RETURNS
		numpy.array, numpy.array :
			cluster durations in frames (max - min + 1);
			number of distinct frames in each cluster

	'''
	n_clusters = len(clusters)
	durations = np.ones(n_clusters)
	n_observations = np.ones(n_clusters)
	for cluster_idx, cluster in enumerate(clusters):
		frames = cluster['frame'].values
		durations[cluster_idx] = frames.max() - frames.min() + 1
		n_observations[cluster_idx] = np.unique(frames).shape[0]
	return durations, n_observations
