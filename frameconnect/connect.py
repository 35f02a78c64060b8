'''
connect.py -- frame connection of single molecule localization
microscopy data.

Repeated localizations of the same blinking emitter are connected and
combined into higher precision localizations in four steps:

	1. precluster localizations that are close in space and time;
	2. estimate the blinking rate parameters and local emitter
	   densities from the preclusters;
	3. solve a linear assignment problem in each precluster to decide
	   which localizations are the same blinking event;
	4. combine connected localizations by their maximum likelihood
	   position assuming Gaussian errors.

Reference:
Schodt & Lidke. "Spatiotemporal clustering of repeated
super-resolution localizations via linear assignment problem."
Front. Bioinform. 1, 724325 (2021).

'''
import numpy as np
import time

from .clusters import organize_clusters
from .combine import combine_localizations
from .estimate import estimate_params, estimate_densities
from .link import connect_localizations
from .locs import as_loc_table, validate_locs, with_track_ids
from .precluster import precluster

class FrameConnectConfig(object):
	'''
	Parameters of frame_connect().

	init
	----
		n_density_neighbors	:	int, number of nearest preclusters
								used for local density estimates
		max_sigma_dist		:	float, multiple of the localization
								error that defines the preclustering
								distance threshold
		max_frame_gap		:	int, maximum frame gap between
								temporally adjacent localizations in a
								precluster
		max_neighbors		:	int, maximum number of nearest
								neighbors inspected for precluster
								membership

	'''
	def __init__(
		self,
		n_density_neighbors = 2,
		max_sigma_dist = 5.0,
		max_frame_gap = 5,
		max_neighbors = 2
	):
		if int(n_density_neighbors) != n_density_neighbors or n_density_neighbors < 1:
			raise ValueError('n_density_neighbors must be an integer >= 1, got %r' % n_density_neighbors)
		if not max_sigma_dist > 0:
			raise ValueError('max_sigma_dist must be > 0, got %r' % max_sigma_dist)
		if int(max_frame_gap) != max_frame_gap or max_frame_gap < 0:
			raise ValueError('max_frame_gap must be an integer >= 0, got %r' % max_frame_gap)
		if int(max_neighbors) != max_neighbors or max_neighbors < 1:
			raise ValueError('max_neighbors must be an integer >= 1, got %r' % max_neighbors)
		self.n_density_neighbors = int(n_density_neighbors)
		self.max_sigma_dist = float(max_sigma_dist)
		self.max_frame_gap = int(max_frame_gap)
		self.max_neighbors = int(max_neighbors)

	def as_dict(self):
		return {
			'n_density_neighbors' : self.n_density_neighbors,
			'max_sigma_dist' : self.max_sigma_dist,
			'max_frame_gap' : self.max_frame_gap,
			'max_neighbors' : self.max_neighbors,
		}

	def __repr__(self):
		return 'FrameConnectConfig(%s)' % ', '.join('%s = %r' % i for i in self.as_dict().items())

class ConnectInfo(object):
	'''
	Secondary output of frame_connect().

	attributes
	----------
		connected		:	pandas.DataFrame, the input localizations
							with track_id set to their connected
							blinking event (not combined)
		n_input			:	int, number of input localizations
		n_tracks		:	int, number of tracks formed
		n_combined		:	int, number of combined localizations
		n_preclusters	:	int, number of preclusters formed
		k_on, k_off, k_bleach	:	float, estimated rates (1/frame)
		p_miss			:	float, estimated probability of missing a
							visible emitter in a frame
		n_emitters		:	float, fitted number of emitters
		density			:	numpy.array, initial emitter density
							around each precluster (emitters/um^2)
		elapsed			:	float, wall time in seconds
		algorithm		:	str, 'lap'
		config			:	FrameConnectConfig

	'''
	def __init__(
		self,
		connected,
		n_input = 0,
		n_tracks = 0,
		n_combined = 0,
		n_preclusters = 0,
		k_on = 0.0,
		k_off = 0.0,
		k_bleach = 0.0,
		p_miss = 0.0,
		n_emitters = 0.0,
		density = None,
		elapsed = 0.0,
		algorithm = 'lap',
		config = None
	):
		self.connected = connected
		self.n_input = n_input
		self.n_tracks = n_tracks
		self.n_combined = n_combined
		self.n_preclusters = n_preclusters
		self.k_on = k_on
		self.k_off = k_off
		self.k_bleach = k_bleach
		self.p_miss = p_miss
		self.n_emitters = n_emitters
		self.density = np.zeros(0) if density is None else density
		self.elapsed = elapsed
		self.algorithm = algorithm
		self.config = config

def frame_connect(
	locs,
	config = None,
	n_frames = None,
	n_datasets = None,
	verbose = False,
	**kwargs
):
	'''
	Connect and combine repeated localizations of the same emitter.

	INPUT
		locs		:	pandas.DataFrame (localization table) or a
						sequence of Localization
		config		:	FrameConnectConfig; if None, one is built
						from *kwargs* (n_density_neighbors,
						max_sigma_dist, max_frame_gap, max_neighbors)
		n_frames	:	int, number of frames per dataset; defaults to
						the largest frame in *locs*
		n_datasets	:	int, number of datasets; defaults to the
						largest dataset in *locs*
		verbose		:	bool, report progress on stdout

	RETURNS
		pandas.DataFrame, ConnectInfo :
			the combined localizations;
			connection results and estimated parameters

	RAISES
		LocalizationError, for localizations with missing fields,
			frame or dataset < 1, or non-positive uncertainties

	'''
	time_0 = time.time()
	if config is None:
		config = FrameConnectConfig(**kwargs)
	elif kwargs:
		config = FrameConnectConfig(**dict(config.as_dict(), **kwargs))

	locs = as_loc_table(locs)
	validate_locs(locs)
	n_input = len(locs)
	if n_input == 0:
		info = ConnectInfo(locs, elapsed = time.time() - time_0, config = config)
		return combine_localizations(locs), info

	max_frame = int(locs['frame'].max())
	if n_frames is None or n_frames < max_frame:
		n_frames = max_frame
	if n_datasets is not None and n_datasets < int(locs['dataset'].max()):
		raise ValueError('n_datasets = %d but localizations come from dataset %d' % \
			(n_datasets, locs['dataset'].max()))

	# Precluster and estimate the rate parameters
	preclustered = precluster(
		locs,
		max_sigma_dist = config.max_sigma_dist,
		max_frame_gap = config.max_frame_gap,
		max_neighbors = config.max_neighbors,
		verbose = verbose
	)
	clusters = organize_clusters(preclustered)
	k_on, k_off, k_bleach, p_miss, n_emitters = estimate_params(preclustered, clusters)
	density = estimate_densities(
		preclustered,
		clusters,
		k_on,
		k_off,
		k_bleach,
		p_miss,
		n_frames = n_frames,
		n_density_neighbors = config.n_density_neighbors
	)
	if verbose:
		print('%d preclusters; k_on = %.4g, k_off = %.4g, k_bleach = %.4g, p_miss = %.3f' % \
			(len(clusters), k_on, k_off, k_bleach, p_miss))

	# Connect localizations within each precluster
	track_ids = connect_localizations(
		preclustered['track_id'].values,
		clusters,
		density,
		k_on,
		k_off,
		k_bleach,
		p_miss,
		config.max_frame_gap,
		n_frames,
		verbose = verbose
	)
	connected = with_track_ids(locs, track_ids)

	combined = combine_localizations(connected)
	elapsed = time.time() - time_0
	if verbose:
		print('Connected %d localizations into %d (%.1f sec)' % (n_input, len(combined), elapsed))

	info = ConnectInfo(
		connected,
		n_input = n_input,
		n_tracks = int(track_ids.max()),
		n_combined = len(combined),
		n_preclusters = len(clusters),
		k_on = k_on,
		k_off = k_off,
		k_bleach = k_bleach,
		p_miss = p_miss,
		n_emitters = n_emitters,
		density = density,
		elapsed = elapsed,
		algorithm = 'lap',
		config = config
	)
	return combined, info
