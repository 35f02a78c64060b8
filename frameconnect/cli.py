'''
cli.py -- command line interface to frame connection.

Localization files are tab-delimited text with a header row naming
the columns of a localization table (see locs.LOC_COLUMNS); at least
x, y, sigma_x, sigma_y and frame are required.

'''
import click
import os

from .connect import frame_connect, FrameConnectConfig
from .combine import combine_localizations
from .ideal import define_ideal_fc
from .locs import read_locs, save_locs, save_locs_as_mat

@click.group()
def cli():
	'''
	Frame connection utilities for single molecule localization
	microscopy data. For usage information on a particular command,
	run

		frameconnect <command_name> --help

	'''
	pass

def _out_path(locs_txt, suffix):
	return '%s%s' % (os.path.splitext(locs_txt)[0], suffix)

@cli.command()
@click.argument('locs_txt', type = str)
@click.option('-k', '--n_density_neighbors', type = int, default = 2, help = 'default 2')
@click.option('-s', '--max_sigma_dist', type = float, default = 5.0, help = 'default 5.0 localization errors')
@click.option('-g', '--max_frame_gap', type = int, default = 5, help = 'default 5 frames')
@click.option('-n', '--max_neighbors', type = int, default = 2, help = 'default 2')
@click.option('-f', '--n_frames', type = int, default = None, help = 'default: largest frame in LOCS_TXT')
@click.option('-c', '--combined_suffix', type = str, default = '_combined.txt', help = 'default _combined.txt')
@click.option('-t', '--connected_suffix', type = str, default = '_connected.txt', help = 'default _connected.txt')
@click.option('-m', '--mat_save_suffix', type = str, default = None, help = 'e.g. _FC.mat; default: no .mat output')
def connect(
	locs_txt,
	n_density_neighbors,
	max_sigma_dist,
	max_frame_gap,
	max_neighbors,
	n_frames,
	combined_suffix,
	connected_suffix,
	mat_save_suffix
):
	'''
	Connect and combine repeated localizations of the same emitter.

	'''
	try:
		config = FrameConnectConfig(
			n_density_neighbors = n_density_neighbors,
			max_sigma_dist = max_sigma_dist,
			max_frame_gap = max_frame_gap,
			max_neighbors = max_neighbors
		)
	except ValueError as e:
		raise click.BadParameter(str(e))
	locs = read_locs(locs_txt)
	combined, info = frame_connect(locs, config = config, n_frames = n_frames, verbose = True)

	save_locs(combined, _out_path(locs_txt, combined_suffix))
	save_locs(info.connected, _out_path(locs_txt, connected_suffix))
	if mat_save_suffix:
		save_locs_as_mat(_out_path(locs_txt, mat_save_suffix), combined,
			connected = info.connected, info = info)
	print('k_on = %.4g, k_off = %.4g, k_bleach = %.4g per frame; p_miss = %.3f' % \
		(info.k_on, info.k_off, info.k_bleach, info.p_miss))
	print('Finished %s: %d -> %d localizations (%.1f sec)' % \
		(locs_txt, info.n_input, info.n_combined, info.elapsed))

@cli.command()
@click.argument('locs_txt', type = str)
@click.option('-g', '--max_frame_gap', type = int, default = 5, help = 'default 5 frames')
@click.option('-c', '--combined_suffix', type = str, default = '_ideal_combined.txt', help = 'default _ideal_combined.txt')
@click.option('-t', '--connected_suffix', type = str, default = '_ideal_connected.txt', help = 'default _ideal_connected.txt')
def ideal(
	locs_txt,
	max_frame_gap,
	combined_suffix,
	connected_suffix
):
	'''
	Ideal frame connection of simulated localizations whose track_id
	column holds the true emitter identity.

	'''
	locs = read_locs(locs_txt)
	combined, connected = define_ideal_fc(locs, max_frame_gap = max_frame_gap)
	save_locs(combined, _out_path(locs_txt, combined_suffix))
	save_locs(connected, _out_path(locs_txt, connected_suffix))
	print('Finished %s: %d -> %d localizations' % (locs_txt, len(locs), len(combined)))

@cli.command()
@click.argument('locs_txt', type = str)
@click.option('-c', '--combined_suffix', type = str, default = '_combined.txt', help = 'default _combined.txt')
def combine(
	locs_txt,
	combined_suffix
):
	'''
	Combine localizations that already share a track_id.

	'''
	locs = read_locs(locs_txt)
	combined = combine_localizations(locs)
	save_locs(combined, _out_path(locs_txt, combined_suffix))
	print('Finished %s: %d -> %d localizations' % (locs_txt, len(locs), len(combined)))

if __name__ == '__main__':
	cli()
