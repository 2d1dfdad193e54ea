import matplotlib.pyplot as plt
from mpl_toolkits.axes_grid1 import make_axes_locatable
import numpy as np
from pathlib import Path
from typing import Optional


class ImageChartGenerator:
    def __init__(self, img, xlabel: str, ylabel: str,
                 save_path_result: str, need_show: bool = False,
                 range_max: float = None, range_min: float = None):
        # create the frame
        self.fig = None
        self.ax = None
        self.figsize = (16, 10)
        self.dpi = 100
        self.pad_inches = 0.3
        self.fontsize = 18

        # masked samples are drawn black
        self.img = np.ma.masked_invalid(np.where(np.asarray(img) < 0, np.nan, img))

        self.xlabel = xlabel
        self.ylabel = ylabel

        # colour range defaults to the valid data range
        valid = self.img.compressed()
        self.min = range_min if range_min is not None else (float(valid.min()) if valid.size else 0.0)
        self.max = range_max if range_max is not None else (float(valid.max()) if valid.size else 1.0)
        if self.max <= self.min:
            self.max = self.min + 1.0

        # need save folder and name
        self.save_path_result = save_path_result
        self.need_show = need_show
        self.photo_name = None

    def create_disparity(self, target_disparity: Optional[float] = None, photo_name=None) -> Path:
        self.photo_name = "disparity" if photo_name is None else photo_name
        self._setup_figure()
        cmap_ = plt.get_cmap('jet_r').copy()
        cmap_.set_bad(color="black")

        im1 = self.ax.imshow(self.img, cmap=cmap_, vmin=self.min, vmax=self.max)

        ticks = [self.min, self.max] if target_disparity is None else [self.min, target_disparity, self.max]
        divider = make_axes_locatable(self.ax)
        cax = divider.append_axes("right", size="5%", pad=self.pad_inches)
        cbar = self.fig.colorbar(im1, ax=self.ax, cax=cax, ticks=ticks)
        cbar.ax.invert_yaxis()
        cbar.ax.tick_params(labelsize=self.fontsize)
        return self._output()

    def _setup_figure(self):
        self.fig, self.ax = plt.subplots(1, 1, figsize=self.figsize, dpi=self.dpi)
        self.ax.set_xlabel(self.xlabel, fontsize=self.fontsize)
        self.ax.set_ylabel(self.ylabel, fontsize=self.fontsize)
        self.ax.tick_params(axis='both', which='major', labelsize=self.fontsize)

    def _output(self) -> Path:
        output_path = Path(self.save_path_result) / f'{self.photo_name}.jpg'
        self.fig.savefig(output_path, bbox_inches='tight', pad_inches=self.pad_inches)
        if self.need_show:
            plt.show()
        plt.close(self.fig)
        return output_path

