'''
Deterministic synthetic localizations for the frame connection tests.

'''
import numpy as np

from frameconnect import Localization, as_loc_table

def make_loc(x, y, frame, sigma = 0.02, photons = 1000.0, bg = 10.0, track_id = 0, dataset = 1, sigma_xy = 0.0):
	return Localization(
		x = float(x),
		y = float(y),
		sigma_x = float(sigma),
		sigma_y = float(sigma),
		sigma_xy = float(sigma_xy),
		photons = float(photons),
		sigma_photons = float(np.sqrt(photons)),
		bg = float(bg),
		sigma_bg = float(np.sqrt(bg)),
		frame = int(frame),
		dataset = int(dataset),
		track_id = int(track_id),
		id = 0,
	)

def make_blinking_molecule(x, y, frames, sigma = 0.02, jitter = 0.002, track_id = 0, dataset = 1):
	'''
	One emitter observed in each of *frames*, with a repeating
	-jitter, 0, +jitter offset pattern instead of random noise.

	'''
	locs = []
	for i, frame in enumerate(frames):
		offset = jitter * (((i + 1) % 3) - 1)
		locs.append(make_loc(x + offset, y + offset, frame, sigma = sigma,
			track_id = track_id, dataset = dataset))
	return locs

def make_table(locs):
	table = as_loc_table(locs)
	table['id'] = np.arange(len(table))
	return table

def partition(track_ids):
	'''
	The partition of row indices induced by *track_ids*, as a set of
	frozensets, so that partitions can be compared regardless of the
	label values.

	'''
	groups = {}
	for idx, track_id in enumerate(np.asarray(track_ids)):
		groups.setdefault(int(track_id), []).append(idx)
	return set(frozenset(g) for g in groups.values())
