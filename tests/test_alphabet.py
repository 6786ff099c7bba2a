import numpy as np
import pytest
from lsalign.core.alphabet import Alphabet, AlphabetError
from lsalign.core.seq import Seq


class TestAlphabetInit:
    def test_valid_init(self):
        alpha = Alphabet(b'ACGT')
        assert len(alpha) == 4
        assert b'A' in alpha
        assert b'Z' not in alpha

    def test_init_invalid_ascii(self):
        with pytest.raises(AlphabetError, match="valid ASCII"):
            Alphabet(b'ACG\xff')

    def test_init_duplicates(self):
        with pytest.raises(AlphabetError, match="duplicate"):
            Alphabet(b'AACGT')

    def test_init_empty(self):
        with pytest.raises(AlphabetError):
            Alphabet(b'')

    def test_aliases(self):
        alpha = Alphabet(b'ACGT', aliases={b'N': b'A'})
        assert alpha.encode(b'N')[0] == alpha.encode(b'A')[0]
        # Lower case aliases resolve too
        assert alpha.encode(b'n')[0] == alpha.encode(b'A')[0]

    def test_alias_target_missing(self):
        with pytest.raises(AlphabetError, match="not in alphabet"):
            Alphabet(b'ACGT', aliases={b'N': b'X'})


class TestAlphabetEncoding:
    def test_encode_decode(self):
        alpha = Alphabet.DNA
        encoded = alpha.encode(b'ACGT')
        # DNA = Alphabet(b'TCAG') -> T=0, C=1, A=2, G=3
        np.testing.assert_array_equal(encoded, [2, 1, 3, 0])
        assert alpha.decode(encoded) == b'ACGT'

    def test_encode_mixed_case(self):
        np.testing.assert_array_equal(Alphabet.DNA.encode(b'acgt'), [2, 1, 3, 0])

    def test_encode_invalid_chars(self):
        with pytest.raises(AlphabetError, match="position 5"):
            Alphabet.DNA.encode(b'ACGTZ')

    def test_index(self):
        assert Alphabet.DNA.index('G') == 3
        assert Alphabet.DNA.index(b'u') == 0
        with pytest.raises(AlphabetError):
            Alphabet.DNA.index('X')
        with pytest.raises(AlphabetError):
            Alphabet.DNA.index('AC')

    def test_containment(self):
        dna = Alphabet.DNA
        assert b'A' in dna
        assert 'A' in dna
        assert 65 in dna  # ord('A')
        assert b'Z' not in dna
        assert b'AC' not in dna


class TestSeqFrom:
    def test_from_str_and_bytes(self):
        assert Alphabet.DNA.seq_from('ACGT') == Alphabet.DNA.seq_from(b'ACGT')

    def test_from_seq_same_alphabet(self):
        seq = Alphabet.DNA.seq_from('ACGT')
        assert Alphabet.DNA.seq_from(seq) is seq

    def test_from_seq_other_alphabet(self):
        with pytest.raises(AlphabetError, match="different alphabet"):
            Alphabet.AMINO.seq_from(Alphabet.DNA.seq_from('ACGT'))

    def test_from_array(self):
        seq = Alphabet.DNA.seq_from(np.array([2, 1, 3, 0]))
        assert bytes(seq) == b'ACGT'
        with pytest.raises(AlphabetError):
            Alphabet.DNA.seq_from(np.array([0, 4]))

    def test_from_unsupported_type(self):
        with pytest.raises(TypeError):
            Alphabet.DNA.seq_from(42)

    def test_empty(self):
        assert len(Alphabet.DNA.empty_seq()) == 0
        assert len(Alphabet.DNA.seq_from('')) == 0

    def test_random_seq(self):
        rng = np.random.default_rng(7)
        seq = Alphabet.AMINO.random_seq(rng, length=50)
        assert len(seq) == 50
        assert seq.alphabet is Alphabet.AMINO
        assert np.asarray(seq).max() < len(Alphabet.AMINO)


class TestSeq:
    def test_direct_construction_forbidden(self):
        with pytest.raises(PermissionError):
            Seq(np.zeros(3, dtype=np.uint8), Alphabet.DNA)

    def test_immutable(self):
        seq = Alphabet.DNA.seq_from('ACGT')
        assert not seq.encoded.flags.writeable
        with pytest.raises(ValueError):
            seq.encoded[0] = 1

    def test_one_indexed_positions(self):
        seq = Alphabet.DNA.seq_from('GATTACA')
        assert seq.symbol(1) == b'G'
        assert seq.symbol(7) == b'A'
        assert seq.code(2) == Alphabet.DNA.index('A')
        with pytest.raises(IndexError):
            seq.symbol(0)
        with pytest.raises(IndexError):
            seq.code(8)

    def test_slicing(self):
        seq = Alphabet.DNA.seq_from('GATTACA')
        assert str(seq[1:4]) == 'ATT'
        assert seq[0] == Alphabet.DNA.index('G')

    def test_hash_and_eq(self):
        a, b = Alphabet.DNA.seq_from('ACGT'), Alphabet.DNA.seq_from(b'acgt')
        assert a == b and hash(a) == hash(b)
        assert a != Alphabet.RNA.seq_from('ACGU')


class TestStandardAlphabets:
    def test_dna_properties(self):
        dna = Alphabet.DNA
        assert len(dna) == 4
        # U is accepted as T
        assert dna.encode(b'U')[0] == dna.encode(b'T')[0]

    def test_rna_properties(self):
        rna = Alphabet.RNA
        assert len(rna) == 4
        assert b'U' in rna
        assert b'T' in rna  # T maps to U via alias, so it is "in" the alphabet (valid)
        assert b'T' not in rna.symbols
        assert rna.encode(b'T')[0] == rna.encode(b'U')[0]

    def test_amino_properties(self):
        prot = Alphabet.AMINO
        assert len(prot) == 20
        assert b'Z' in prot  # Z is alias for E
        assert b'Z' not in prot.symbols
        assert prot.encode(b'Z')[0] == prot.encode(b'E')[0]
