'''
ideal.py -- the "ideal" frame connection result for simulated data
with known emitter identities, used to benchmark frame_connect().

'''
import numpy as np

from .combine import combine_localizations
from .locs import as_loc_table, with_track_ids
from .precluster import compress_track_ids

def define_ideal_fc(locs, max_frame_gap = 5):
	'''
	Connect localizations of the same emitter whenever consecutive
	observations (within one dataset) are at most *max_frame_gap*
	frames apart, and start a new blinking event otherwise.

	If an emitter returns from the dark state within *max_frame_gap*
	frames, its two blinking events are merged, just as frame_connect()
	would be expected to merge them.

	INPUT
		locs			:	pandas.DataFrame, localization table whose
							track_id holds the true emitter identity
		max_frame_gap	:	int

	RETURNS
		pandas.DataFrame, pandas.DataFrame :
			combined localizations;
			*locs* with track_id set to the ideal blinking event

	'''
	locs = as_loc_table(locs)
	n_locs = len(locs)
	if n_locs == 0:
		return combine_localizations(locs), locs

	emitter_ids = locs['track_id'].values
	datasets = locs['dataset'].values
	frames = locs['frame'].values

	# Sort by emitter, then dataset, then frame; a new event starts
	# wherever any of these changes or the frame gap is too large.
	order = np.lexsort((np.arange(n_locs), frames, datasets, emitter_ids))
	new_event = np.ones(n_locs, dtype = 'bool')
	new_event[1:] = (np.diff(emitter_ids[order]) != 0) | \
		(np.diff(datasets[order]) != 0) | \
		(np.diff(frames[order]) > max_frame_gap)
	event_ids = np.empty(n_locs, dtype = 'int64')
	event_ids[order] = np.cumsum(new_event)

	connected = with_track_ids(locs, compress_track_ids(event_ids))
	return combine_localizations(connected), connected
